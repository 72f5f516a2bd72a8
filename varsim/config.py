# varsim/config.py
import os
import logging
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

load_dotenv()


def _bool(value: str) -> bool:
    return value.strip().lower() in ("1", "true", "yes", "on")


@dataclass(frozen=True)
class Settings:
    service: str = "opcua-varsim"
    version: str = "0.1.0"
    http_host: str = "0.0.0.0"
    http_port: int = 3005
    log_level: str = "INFO"
    lib_log_level: str = "WARNING"
    db_path: Path = Path("data/database.sqlite")
    opcua_endpoint: str = "opc.tcp://0.0.0.0:4334/UA/Server"
    opcua_server_name: str = "opcua-varsim"
    opcua_namespace_uri: str = "urn:opcua-varsim:simulation"
    rebuild_timeout: float = 5.0
    seed_on_startup: bool = True

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(
            service=os.getenv("SERVICE_NAME", cls.service),
            version=os.getenv("SERVICE_VERSION", cls.version),
            http_host=os.getenv("HTTP_HOST", cls.http_host),
            http_port=int(os.getenv("HTTP_PORT", str(cls.http_port))),
            log_level=os.getenv("LOG_LEVEL", cls.log_level),
            lib_log_level=os.getenv("LIB_LOG_LEVEL", cls.lib_log_level),
            db_path=Path(os.getenv("DB_PATH", str(cls.db_path))),
            opcua_endpoint=os.getenv("OPCUA_ENDPOINT", cls.opcua_endpoint),
            opcua_server_name=os.getenv("OPCUA_SERVER_NAME", cls.opcua_server_name),
            opcua_namespace_uri=os.getenv("OPCUA_NAMESPACE_URI", cls.opcua_namespace_uri),
            rebuild_timeout=float(os.getenv("REBUILD_TIMEOUT", str(cls.rebuild_timeout))),
            seed_on_startup=_bool(os.getenv("SEED_ON_STARTUP", "true")),
        )


def configure_logging(settings: Settings) -> None:
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )
    for noisy in ("asyncua", "uvicorn.access"):
        logging.getLogger(noisy).setLevel(settings.lib_log_level)
