"""
UserApps protobuf codec.

The message layout matches appsinstalled.proto shipped next to this module:

    message UserApps {
        repeated uint32 apps = 1;
        optional double lat = 2;
        optional double lon = 3;
    }

The descriptor is built at import time so no protoc step is needed.
"""

from typing import List, Tuple
from google.protobuf import descriptor_pb2, descriptor_pool, message_factory
from google.protobuf.message import DecodeError, EncodeError
from core.exceptions import CodecError
from schemas.device_apps import DeviceRecord
from ingestion.parser import parse_line
import logging

logger = logging.getLogger(__name__)

_FIELD = descriptor_pb2.FieldDescriptorProto


def _build_user_apps_class():
    file_proto = descriptor_pb2.FileDescriptorProto(
        name="appsinstalled.proto",
        package="appsinstalled",
        syntax="proto2",
    )
    message = file_proto.message_type.add(name="UserApps")
    message.field.add(name="apps", number=1, type=_FIELD.TYPE_UINT32, label=_FIELD.LABEL_REPEATED)
    message.field.add(name="lat", number=2, type=_FIELD.TYPE_DOUBLE, label=_FIELD.LABEL_OPTIONAL)
    message.field.add(name="lon", number=3, type=_FIELD.TYPE_DOUBLE, label=_FIELD.LABEL_OPTIONAL)

    pool = descriptor_pool.DescriptorPool()
    pool.AddSerializedFile(file_proto.SerializeToString())
    return message_factory.GetMessageClass(pool.FindMessageTypeByName("appsinstalled.UserApps"))


UserApps = _build_user_apps_class()


def serialize(record: DeviceRecord) -> bytes:
    """Pack lat, lon and apps of a record into UserApps bytes"""
    try:
        message = UserApps(lat=record.lat, lon=record.lon, apps=list(record.apps))
        return message.SerializeToString()
    except (EncodeError, ValueError, TypeError) as e:
        raise CodecError(
            "Failed to serialize UserApps",
            context={"key": record.store_key},
            original_exception=e
        )


def deserialize(payload: bytes) -> Tuple[float, float, List[int]]:
    """Unpack UserApps bytes into (lat, lon, apps)"""
    message = UserApps()
    try:
        message.ParseFromString(payload)
    except DecodeError as e:
        raise CodecError("Failed to parse UserApps payload", original_exception=e)
    return message.lat, message.lon, list(message.apps)


SAMPLE_LINES = (
    "idfa\t1rfw452y52g2gq4g\t55.55\t42.42\t1423,43,567,3,7,23",
    "gaid\t7rfw452y52g2gq4g\t55.55\t42.42\t7423,424",
)


def self_check() -> bool:
    """
    Round-trip the built-in sample lines through the codec.

    Returns:
        True when every sample decodes back to the same lat, lon and apps
    """
    for line in SAMPLE_LINES:
        record = parse_line(line)
        lat, lon, apps = deserialize(serialize(record))
        if lat != record.lat or lon != record.lon or apps != list(record.apps):
            logger.error(f"UserApps round-trip mismatch for {record.store_key}")
            return False
    logger.info("UserApps codec self-check passed")
    return True
