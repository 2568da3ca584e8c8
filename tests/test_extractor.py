from __future__ import annotations

import ast
from pathlib import Path

import pytest

from conftest import Workspace
from rpc_proxygen.codegen.diagnostics import DiagnosticKind
from rpc_proxygen.codegen.discovery import discover_services
from rpc_proxygen.codegen.extractor import NO_PAYLOAD, ExtractionResult, HandlerExtractor, ServiceModule, payload_index
from rpc_proxygen.codegen.symbols import ModuleIndex
from rpc_proxygen.markers import HandlerKind

USERS_CONTROLLER = """
from typing import Annotated, Final

from rpc_proxygen.markers import Payload, event_pattern, message_pattern

GET_USER: Final = "users.get"


class UsersController:
    @message_pattern(GET_USER)
    async def get_user(self, user_id: int) -> dict: ...

    @message_pattern({"cmd": "list"})
    async def list_users_stream(self): ...

    @message_pattern(["users", "update"])
    async def update_user(self, ctx: object, body: Annotated[dict, Payload]): ...

    @event_pattern("users.created")
    async def on_created(self, event: dict) -> None: ...

    @event_pattern("users.password-reset")
    async def on_password_reset(self) -> None: ...

    async def helper(self): ...


class _InternalController:
    @message_pattern("users.internal")
    async def internal(self): ...
"""


def _extract(workspace: Workspace) -> tuple[ServiceModule, ExtractionResult]:
    services = discover_services(workspace.root)
    assert len(services) == 1
    service = services[0]
    return service, HandlerExtractor(ModuleIndex(workspace.root)).extract(service)


def _messages(result: ExtractionResult) -> list[str]:
    return [diagnostic.message for diagnostic in result.diagnostics]


def test_extracts_request_and_event_handlers(workspace: Workspace) -> None:
    workspace.service("users", USERS_CONTROLLER)

    service, result = _extract(workspace)

    assert not result.diagnostics
    records = {record.method_name: record for record in result.records}
    assert sorted(records) == ["get_user", "list_users_stream", "on_created", "on_password_reset", "update_user"]

    get_user = records["get_user"]
    assert get_user.kind == HandlerKind.REQUEST
    assert get_user.pattern == "users.get"
    assert get_user.pattern_source == "GET_USER"
    assert get_user.payload_index == 0
    assert get_user.class_name == "UsersController"
    assert get_user.service_name == "Users"
    assert get_user.client_method_name == "get_user"

    assert records["list_users_stream"].pattern == {"cmd": "list"}
    assert records["list_users_stream"].payload_index == NO_PAYLOAD
    assert records["update_user"].pattern == ["users", "update"]
    assert records["update_user"].payload_index == 1

    created = records["on_created"]
    assert created.is_event
    assert created.event_name == "created"
    assert created.client_method_name == "emit_created"
    assert records["on_password_reset"].client_method_name == "emit_password_reset"
    assert not records["on_password_reset"].has_payload


def test_event_key_must_carry_own_kebab_service_name(workspace: Workspace) -> None:
    workspace.service(
        "user_profile",
        """
        from rpc_proxygen.markers import event_pattern

        class ProfileController:
            @event_pattern("user-profile.updated")
            async def on_updated(self, event): ...

            @event_pattern("users.updated")
            async def on_other_service(self, event): ...
        """,
    )

    service, result = _extract(workspace)

    assert service.kebab_name == "user-profile"
    assert [record.client_method_name for record in result.records] == ["emit_updated"]
    (message,) = _messages(result)
    assert message.startswith(
        'Event handler pattern should be in the format "<service_name_in_kebabcase>.<event_name>": "users.updated"'
    )


def test_event_key_with_trailing_newline_is_rejected(workspace: Workspace) -> None:
    workspace.service(
        "users",
        """
        from rpc_proxygen.markers import event_pattern

        class UsersController:
            @event_pattern("users.created\\n")
            async def on_created(self, event): ...
        """,
    )

    _, result = _extract(workspace)

    assert result.records == []
    (message,) = _messages(result)
    assert message.startswith("Event handler pattern should be in the format")


def test_request_handler_with_reserved_prefix_is_rejected(workspace: Workspace) -> None:
    path = workspace.service(
        "users",
        """
        from rpc_proxygen.markers import message_pattern

        class UsersController:
            @message_pattern("users.emit")
            async def emit_something(self): ...
        """,
    )

    _, result = _extract(workspace)

    assert result.records == []
    (diagnostic,) = result.diagnostics
    assert diagnostic.kind == DiagnosticKind.EXTRACTION
    assert diagnostic.message == (
        f'Message handler name should not start with "emit": method "emit_something" in "{path}:5:15".'
    )


def test_event_key_must_be_string_like(workspace: Workspace) -> None:
    workspace.service(
        "users",
        """
        from rpc_proxygen.markers import event_pattern

        class UsersController:
            @event_pattern(["users", "created"])
            async def on_created(self, event): ...
        """,
    )

    _, result = _extract(workspace)

    (message,) = _messages(result)
    assert message.startswith("Pattern expression for event handlers should be recognizable as string")


@pytest.mark.parametrize(
    ("declaration", "pattern", "reason"),
    [
        ('KEY = "users.get"', "KEY", "single-valued type"),
        ('KEY: str = "users.get"', "KEY", "more than one value"),
        ("", '""', "empty"),
        ("", "[]", "empty"),
        ("", "None", "empty"),
    ],
)
def test_unresolvable_or_empty_keys_are_reported(
    workspace: Workspace, declaration: str, pattern: str, reason: str
) -> None:
    workspace.service(
        "users",
        f"""
from rpc_proxygen.markers import message_pattern

{declaration}

class UsersController:
    @message_pattern({pattern})
    async def get_user(self, user_id): ...
""",
    )

    _, result = _extract(workspace)

    assert result.records == []
    (message,) = _messages(result)
    assert message.startswith('Couldn\'t extract pattern expression for "get_user"')
    assert reason in message
    assert "Try annotating the constant with Final or a Literal type" in message


def test_zero_is_a_valid_key(workspace: Workspace) -> None:
    workspace.service(
        "users",
        """
        from rpc_proxygen.markers import message_pattern

        class UsersController:
            @message_pattern(0)
            async def ping(self): ...
        """,
    )

    _, result = _extract(workspace)

    assert not result.diagnostics
    assert result.records[0].pattern == 0


def test_extraction_continues_after_a_diagnostic(workspace: Workspace) -> None:
    workspace.service(
        "users",
        """
        from rpc_proxygen.markers import message_pattern

        class UsersController:
            @message_pattern(KEY_NOT_DEFINED)
            async def broken(self): ...

            @message_pattern("users.ok")
            async def ok(self): ...
        """,
    )

    _, result = _extract(workspace)

    assert len(result.diagnostics) == 1
    assert [record.method_name for record in result.records] == ["ok"]


def test_only_exported_classes_are_scanned(workspace: Workspace) -> None:
    workspace.service(
        "users",
        """
        from rpc_proxygen.markers import message_pattern

        __all__ = ["PublicController"]

        class PublicController:
            @message_pattern("users.public")
            async def public(self): ...

        class NotExported:
            @message_pattern("users.hidden")
            async def hidden(self): ...
        """,
    )

    _, result = _extract(workspace)

    assert [record.method_name for record in result.records] == ["public"]


def test_private_classes_are_skipped(workspace: Workspace) -> None:
    workspace.service("users", USERS_CONTROLLER)

    _, result = _extract(workspace)

    assert "internal" not in {record.method_name for record in result.records}


def test_attribute_decorators_are_recognized(workspace: Workspace) -> None:
    workspace.service(
        "users",
        """
        from rpc_proxygen import markers

        class UsersController:
            @markers.message_pattern("users.get")
            async def get_user(self, user_id): ...
        """,
    )

    _, result = _extract(workspace)

    assert [record.pattern for record in result.records] == ["users.get"]


def test_unparsable_controller_becomes_a_diagnostic(workspace: Workspace) -> None:
    workspace.service("users", "class UsersController(:\n    pass\n")

    _, result = _extract(workspace)

    assert result.records == []
    (message,) = _messages(result)
    assert message.startswith("Couldn't parse controller")


def _method(source: str) -> ast.FunctionDef:
    node = ast.parse(source).body[0]
    assert isinstance(node, ast.FunctionDef)
    return node


@pytest.mark.parametrize(
    ("source", "expected"),
    [
        ("def handler(self): ...", NO_PAYLOAD),
        ("def handler(): ...", NO_PAYLOAD),
        ("def handler(self, data): ...", 0),
        ("def handler(self, ctx, data: Annotated[dict, Payload]): ...", 1),
        ("def handler(self, ctx, data: Annotated[dict, Payload()]): ...", 1),
        ("def handler(self, ctx, data: Annotated[dict, markers.Body]): ...", 1),
        ("def handler(self, ctx, data: 'Annotated[dict, Payload]'): ...", 1),
        ("@staticmethod\ndef handler(self, data: Annotated[dict, Payload]): ...", 1),
        ("def handler(self, *, data): ...", NO_PAYLOAD),
    ],
)
def test_payload_index(source: str, expected: int) -> None:
    assert payload_index(_method(source)) == expected


def test_controller_discovery_finds_nested_controllers(workspace: Workspace) -> None:
    workspace.write("apps/orders/orders_module.py")
    workspace.write("apps/orders/controller.py")
    workspace.write("apps/orders/admin/refunds_controller.py")
    workspace.write("apps/orders/orders_service.py")
    workspace.write("apps/orders/misc_module.py")

    (service,) = discover_services(workspace.root)

    assert service.basename == "orders"
    assert service.service_name == "Orders"
    assert service.handler_files == (
        Path(workspace.root / "apps/orders/admin/refunds_controller.py"),
        Path(workspace.root / "apps/orders/controller.py"),
    )
