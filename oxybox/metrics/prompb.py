"""
Prometheus remote-write protobuf messages.

The subset of prometheus/prompb (remote.proto, types.proto) needed to push
samples, registered in a private descriptor pool at import time:

    message WriteRequest { repeated TimeSeries timeseries = 1; }
    message TimeSeries   { repeated Label labels = 1; repeated Sample samples = 2; }
    message Label        { string name = 1; string value = 2; }
    message Sample       { double value = 1; int64 timestamp = 2; }

Field numbers match upstream, so payloads are readable by any remote-write
receiver.
"""

from google.protobuf import descriptor_pb2, descriptor_pool, message_factory

_FIELD = descriptor_pb2.FieldDescriptorProto

PACKAGE = "prometheus"


def _add_field(message, name: str, number: int, field_type: int, repeated: bool = False, type_name: str = None):
    field = message.field.add()
    field.name = name
    field.number = number
    field.type = field_type
    field.label = _FIELD.LABEL_REPEATED if repeated else _FIELD.LABEL_OPTIONAL
    if type_name:
        field.type_name = f".{PACKAGE}.{type_name}"


def _build_file_descriptor() -> descriptor_pb2.FileDescriptorProto:
    file_proto = descriptor_pb2.FileDescriptorProto()
    file_proto.name = "oxybox/prometheus_remote.proto"
    file_proto.package = PACKAGE
    file_proto.syntax = "proto3"

    label = file_proto.message_type.add()
    label.name = "Label"
    _add_field(label, "name", 1, _FIELD.TYPE_STRING)
    _add_field(label, "value", 2, _FIELD.TYPE_STRING)

    sample = file_proto.message_type.add()
    sample.name = "Sample"
    _add_field(sample, "value", 1, _FIELD.TYPE_DOUBLE)
    _add_field(sample, "timestamp", 2, _FIELD.TYPE_INT64)

    series = file_proto.message_type.add()
    series.name = "TimeSeries"
    _add_field(series, "labels", 1, _FIELD.TYPE_MESSAGE, repeated=True, type_name="Label")
    _add_field(series, "samples", 2, _FIELD.TYPE_MESSAGE, repeated=True, type_name="Sample")

    write_request = file_proto.message_type.add()
    write_request.name = "WriteRequest"
    _add_field(write_request, "timeseries", 1, _FIELD.TYPE_MESSAGE, repeated=True, type_name="TimeSeries")

    return file_proto


_pool = descriptor_pool.DescriptorPool()
_pool.AddSerializedFile(_build_file_descriptor().SerializeToString())


def _message_class(name: str):
    return message_factory.GetMessageClass(_pool.FindMessageTypeByName(f"{PACKAGE}.{name}"))


Label = _message_class("Label")
Sample = _message_class("Sample")
TimeSeries = _message_class("TimeSeries")
WriteRequest = _message_class("WriteRequest")
