"""Output sinks for exporting reconciliation results."""

from reco_engine.sinks.json_file import JsonFileSink
from reco_engine.sinks.serialization import dataclass_to_dict, serialize_value, to_dict

__all__ = ["JsonFileSink", "dataclass_to_dict", "serialize_value", "to_dict"]
