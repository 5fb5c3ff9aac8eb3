# -*- coding: utf-8 -*-
"""
Typed RPC procedures over HTTP.

Procedures are grouped in routers and addressed as ``<router>.<procedure>``:
queries are called with GET (input as a JSON string in ``?input=``), mutations
with POST (input as the JSON body). Input is checked against a field -> type
mapping before the handler runs, protected procedures require a logged-in
user, and handlers raise RPCError for expected failures.
"""

import json
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Mapping, Optional

from flask import current_app, request
from flask_login import current_user

from launchkit.exceptions import ValidationError
from launchkit.extensions import db
from launchkit.utils.http_helpers import api_error, api_ok, get_request_id, log_rejection
from launchkit.utils.validation import validate_form_data

QUERY = "query"
MUTATION = "mutation"

HTTP_METHOD_BY_KIND = {QUERY: "GET", MUTATION: "POST"}

STATUS_BY_CODE = {
    "BAD_REQUEST": 400,
    "UNAUTHORIZED": 401,
    "FORBIDDEN": 403,
    "NOT_FOUND": 404,
    "METHOD_NOT_SUPPORTED": 405,
    "CONFLICT": 409,
    "INTERNAL_SERVER_ERROR": 500,
}


class RPCError(Exception):
    def __init__(self, code: str, message: str, details: Optional[Mapping[str, Any]] = None):
        if code not in STATUS_BY_CODE:
            raise ValueError(f"Unknown RPC error code: {code}")
        super().__init__(message)
        self.code = code
        self.message = message
        self.details = details

    @property
    def http_status(self) -> int:
        return STATUS_BY_CODE[self.code]


@dataclass
class ProcedureContext:
    user: Any
    headers: Mapping[str, str]


@dataclass
class Procedure:
    name: str
    kind: str
    handler: Callable[[ProcedureContext, Dict[str, Any]], Any]
    protected: bool = True
    input_schema: Optional[Dict[str, type]] = None


@dataclass
class Router:
    name: str
    procedures: Dict[str, Procedure] = field(default_factory=dict)

    def _register(self, kind: str, name: Optional[str], protected: bool, input_schema: Optional[Dict[str, type]]):
        def decorator(fn):
            proc_name = name or fn.__name__
            if proc_name in self.procedures:
                raise ValueError(f"Procedure {self.name}.{proc_name} already registered")
            self.procedures[proc_name] = Procedure(proc_name, kind, fn, protected, input_schema)
            return fn
        return decorator

    def query(self, name: Optional[str] = None, *, protected: bool = True, input: Optional[Dict[str, type]] = None):
        return self._register(QUERY, name, protected, input)

    def mutation(self, name: Optional[str] = None, *, protected: bool = True, input: Optional[Dict[str, type]] = None):
        return self._register(MUTATION, name, protected, input)


def _read_input(kind: str) -> Any:
    if kind == QUERY:
        raw = request.args.get("input")
        if raw is None or raw == "":
            return {}
        try:
            return json.loads(raw)
        except ValueError:
            raise RPCError("BAD_REQUEST", "input must be valid JSON")
    if not request.get_data():
        return {}
    data = request.get_json(force=True, silent=True)
    if data is None:
        raise RPCError("BAD_REQUEST", "Request body must be valid JSON")
    return data


def call_procedure(routers: Mapping[str, Router], path: str):
    """Resolve ``path`` to a procedure, run it and wrap the result in the API envelope."""
    router_name, _, proc_name = path.partition(".")
    router = routers.get(router_name)
    procedure = router.procedures.get(proc_name) if router else None
    try:
        if procedure is None:
            raise RPCError("NOT_FOUND", f"No procedure found on path \"{path}\"")
        if request.method != HTTP_METHOD_BY_KIND[procedure.kind]:
            raise RPCError("METHOD_NOT_SUPPORTED", f"Unsupported {request.method} request to {procedure.kind} procedure")
        if procedure.protected and not current_user.is_authenticated:
            log_rejection("unauthenticated", f"rpc={path}")
            raise RPCError("UNAUTHORIZED", "UNAUTHORIZED")

        raw_input = _read_input(procedure.kind)
        if procedure.input_schema is not None:
            try:
                payload = validate_form_data(raw_input, procedure.input_schema)
            except ValidationError as e:
                raise RPCError("BAD_REQUEST", e.message, details=e.to_dict())
        else:
            payload = raw_input if isinstance(raw_input, dict) else {}

        ctx = ProcedureContext(
            user=current_user if current_user.is_authenticated else None,
            headers=request.headers,
        )
        result = procedure.handler(ctx, payload)
        return api_ok(result)
    except RPCError as e:
        return api_error(e.code, e.message, status=e.http_status, details=e.details)
    except Exception:
        db.session.rollback()
        current_app.logger.exception("[RPC] %s failed request_id=%s", path, get_request_id())
        return api_error("INTERNAL_SERVER_ERROR", "Internal server error", status=500)
