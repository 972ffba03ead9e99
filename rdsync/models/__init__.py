from rdsync.models.base import Base
from rdsync.models.demanda import Demanda, DemandaHistorico
from rdsync.models.empresa import Empresa
from rdsync.models.rd_sinistro_config import EmpresaRdSinistroConfig
from rdsync.models.sinistro import SinistroVida
from rdsync.models.sinistro_timeline import SinistroTimeline
from rdsync.models.sync_log import RdStationSyncLog
from rdsync.models.user import User
from rdsync.models.webhook_event import WebhookEvent

__all__ = [
    "Base",
    "Demanda",
    "DemandaHistorico",
    "Empresa",
    "EmpresaRdSinistroConfig",
    "RdStationSyncLog",
    "SinistroTimeline",
    "SinistroVida",
    "User",
    "WebhookEvent",
]
