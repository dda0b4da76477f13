"""
Plugin 服务的 protobuf 定义

在运行时由 FileDescriptorProto 构建消息类，不依赖 protoc 生成代码。等价的 .proto：

    syntax = "proto3";
    package proto;

    import "google/protobuf/empty.proto";
    import "google/protobuf/struct.proto";

    message FieldSchema {
      string name = 1;
      string type = 2;
      bool required = 3;
      string description = 4;
    }

    message GetSchemaResponse {
      repeated FieldSchema fields = 1;
    }

    message ProviderSpec {
      string provider = 1;
      google.protobuf.Struct config = 2;
    }

    message StartRequest {
      google.protobuf.Struct config = 1;
      ProviderSpec input = 2;
      ProviderSpec output = 3;
    }

    service Plugin {
      rpc GetSchema(google.protobuf.Empty) returns (GetSchemaResponse);
      rpc Start(StartRequest) returns (google.protobuf.Empty);
    }
"""

from google.protobuf import descriptor_pb2, descriptor_pool, empty_pb2, message_factory, struct_pb2

PACKAGE = "proto"
SERVICE_NAME = f"{PACKAGE}.Plugin"
GET_SCHEMA_METHOD = f"/{SERVICE_NAME}/GetSchema"
START_METHOD = f"/{SERVICE_NAME}/Start"

_FILE_NAME = "dstream/plugin.proto"

_F = descriptor_pb2.FieldDescriptorProto


def _add_field(message, name: str, number: int, field_type: int, type_name: str = "", repeated: bool = False):
    field = message.field.add()
    field.name = name
    field.number = number
    field.type = field_type
    field.label = _F.LABEL_REPEATED if repeated else _F.LABEL_OPTIONAL
    if type_name:
        field.type_name = type_name


def _build_file_proto() -> descriptor_pb2.FileDescriptorProto:
    file_proto = descriptor_pb2.FileDescriptorProto()
    file_proto.name = _FILE_NAME
    file_proto.package = PACKAGE
    file_proto.syntax = "proto3"
    file_proto.dependency.append(empty_pb2.DESCRIPTOR.name)
    file_proto.dependency.append(struct_pb2.DESCRIPTOR.name)

    field_schema = file_proto.message_type.add()
    field_schema.name = "FieldSchema"
    _add_field(field_schema, "name", 1, _F.TYPE_STRING)
    _add_field(field_schema, "type", 2, _F.TYPE_STRING)
    _add_field(field_schema, "required", 3, _F.TYPE_BOOL)
    _add_field(field_schema, "description", 4, _F.TYPE_STRING)

    schema_response = file_proto.message_type.add()
    schema_response.name = "GetSchemaResponse"
    _add_field(schema_response, "fields", 1, _F.TYPE_MESSAGE, f".{PACKAGE}.FieldSchema", repeated=True)

    provider_spec = file_proto.message_type.add()
    provider_spec.name = "ProviderSpec"
    _add_field(provider_spec, "provider", 1, _F.TYPE_STRING)
    _add_field(provider_spec, "config", 2, _F.TYPE_MESSAGE, ".google.protobuf.Struct")

    start_request = file_proto.message_type.add()
    start_request.name = "StartRequest"
    _add_field(start_request, "config", 1, _F.TYPE_MESSAGE, ".google.protobuf.Struct")
    _add_field(start_request, "input", 2, _F.TYPE_MESSAGE, f".{PACKAGE}.ProviderSpec")
    _add_field(start_request, "output", 3, _F.TYPE_MESSAGE, f".{PACKAGE}.ProviderSpec")

    service = file_proto.service.add()
    service.name = "Plugin"
    get_schema = service.method.add()
    get_schema.name = "GetSchema"
    get_schema.input_type = ".google.protobuf.Empty"
    get_schema.output_type = f".{PACKAGE}.GetSchemaResponse"
    start = service.method.add()
    start.name = "Start"
    start.input_type = f".{PACKAGE}.StartRequest"
    start.output_type = ".google.protobuf.Empty"

    return file_proto


_pool = descriptor_pool.Default()
DESCRIPTOR = _pool.AddSerializedFile(_build_file_proto().SerializeToString())


def _message_class(name: str):
    return message_factory.GetMessageClass(_pool.FindMessageTypeByName(f"{PACKAGE}.{name}"))


FieldSchema = _message_class("FieldSchema")
GetSchemaResponse = _message_class("GetSchemaResponse")
ProviderSpec = _message_class("ProviderSpec")
StartRequest = _message_class("StartRequest")
Empty = empty_pb2.Empty
