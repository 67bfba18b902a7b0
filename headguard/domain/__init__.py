from .serialization import (
    SCHEMA_VERSION,
    ProtocolJSONEncoder,
    dumps,
    event_to_dict,
    loads,
    protocol_from_dict,
    protocol_to_dict,
)

__all__ = [
    'SCHEMA_VERSION',
    'ProtocolJSONEncoder',
    'dumps',
    'event_to_dict',
    'loads',
    'protocol_from_dict',
    'protocol_to_dict',
]
