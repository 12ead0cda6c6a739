# app/schemas/base.py
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """
    Base schema for everything exchanged with clients.

    Python attributes stay snake_case; the JSON wire format is camelCase
    (`agendaItemId`, `proxyCompanyId`, ...). Both spellings are accepted on
    input, responses are emitted by alias.
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


class Ack(CamelModel):
    """
    Plain acknowledgement body for mutations that have nothing else to return.
    """

    message: str
