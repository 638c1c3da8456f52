# models/constants.py
"""String constants stored in the String columns guarded by check constraints."""


class LeadStatus:
    NOVO = "NOVO"
    EM_ATENDIMENTO = "EM_ATENDIMENTO"
    EM_NEGOCIACAO = "EM_NEGOCIACAO"
    FECHADO = "FECHADO"
    PERDIDO = "PERDIDO"

    ALL = (NOVO, EM_ATENDIMENTO, EM_NEGOCIACAO, FECHADO, PERDIDO)


class Role:
    MASTER = "MASTER"
    GERENTE_SENIOR = "GERENTE_SENIOR"
    GERENTE_NEGOCIOS = "GERENTE_NEGOCIOS"
    PROPRIETARIO = "PROPRIETARIO"
    CONSULTOR = "CONSULTOR"

    ALL = (MASTER, GERENTE_SENIOR, GERENTE_NEGOCIOS, PROPRIETARIO, CONSULTOR)


class CampaignStatus:
    ATIVA = "ATIVA"
    PAUSADA = "PAUSADA"
    ENCERRADA = "ENCERRADA"

    ALL = (ATIVA, PAUSADA, ENCERRADA)


class DistributionMode:
    MANUAL = "manual"   # fixed quantity per consultant
    AUTO = "auto"       # the whole filtered stock, split evenly

    ALL = (MANUAL, AUTO)


class HistoryAction:
    CREATE = "CREATE"
    ASSIGN = "ASSIGN"
    REASSIGN = "REASSIGN"
    RECAPTURE = "RECAPTURE"
    RESET = "RESET"
    STATUS_CHANGE = "STATUS_CHANGE"

    ALL = (CREATE, ASSIGN, REASSIGN, RECAPTURE, RESET, STATUS_CHANGE)


def check_in(column: str, values) -> str:
    """SQL text for a `column IN (...)` check constraint."""
    quoted = ",".join(f"'{v}'" for v in values)
    return f"{column} IN ({quoted})"
