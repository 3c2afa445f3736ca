from pydantic import BaseModel


class EnvConfig(BaseModel):
    """
    Describes one environment setting a client needs before it can be constructed.

    Attributes:
        env_key (str): Raw key, prefixed by the client as "{TYPE}_{ENGINE}_{KEY}" (e.g. "URL" → "RAG_SUPABASE_URL").
        val_type (str): Expected type of the value. Supported types are "string", "number", "bool" and "list".
        default (str | int | float | bool | list | None): Default used when the variable is unset. None marks the setting as required.
    """

    env_key: str
    val_type: str
    default: str | int | float | bool | list | None = None
