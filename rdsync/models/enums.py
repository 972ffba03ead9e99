from enum import Enum

class AppRole(str, Enum):
    admin_vizio = "admin_vizio"
    admin_empresa = "admin_empresa"
    rh_gestor = "rh_gestor"
    visualizador = "visualizador"

class SinistroStatus(str, Enum):
    em_analise = "em_analise"
    pendente_documentos = "pendente_documentos"
    em_andamento = "em_andamento"
    enviado_operadora = "enviado_operadora"
    aprovado = "aprovado"
    negado = "negado"
    pago = "pago"
    concluido = "concluido"

class SinistroPrioridade(str, Enum):
    baixa = "baixa"
    media = "media"
    alta = "alta"
    critica = "critica"

class StatusDemanda(str, Enum):
    pendente = "pendente"
    em_andamento = "em_andamento"
    aguardando_documentacao = "aguardando_documentacao"
    concluido = "concluido"
    cancelado = "cancelado"

class TipoDemanda(str, Enum):
    certificado = "certificado"
    carteirinha = "carteirinha"
    alteracao_cadastral = "alteracao_cadastral"
    reembolso = "reembolso"
    autorizacao = "autorizacao"
    agendamento = "agendamento"
    outro = "outro"

class PrioridadeDemanda(str, Enum):
    baixa = "baixa"
    media = "media"
    alta = "alta"
    urgente = "urgente"

class SyncStatus(str, Enum):
    ok = "ok"
    error = "error"

class WebhookEventStatus(str, Enum):
    pending = "pending"
    processing = "processing"
    ok = "ok"
    ignored = "ignored"
    error = "error"

class TimelineSource(str, Enum):
    sistema = "sistema"
    rd_station = "rd_station"

class TimelineEventType(str, Enum):
    created = "created"
    status_changed = "status_changed"
    sync = "sync"

class SyncLogStatus(str, Enum):
    running = "running"
    success = "success"
    error = "error"
