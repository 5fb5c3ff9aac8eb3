# -*- coding: utf-8 -*-
"""RPC blueprint and the terms procedures."""

from flask import Blueprint

from launchkit.exceptions import AcceptanceConflictError, TermsNotFoundError
from launchkit.rpc import Router, RPCError, call_procedure
from launchkit.terms import accept_terms, get_current_terms, get_terms_status, get_user_acceptances
from launchkit.utils.http_helpers import get_client_ip

bp = Blueprint("rpc", __name__)

terms_router = Router("terms")


@terms_router.query("getCurrentTermsStatus")
def get_current_terms_status(ctx, _input):
    try:
        return get_terms_status(ctx.user.id)
    except TermsNotFoundError as e:
        raise RPCError("NOT_FOUND", e.message)


@terms_router.mutation("acceptTerms", input={"termsId": str})
def accept_terms_procedure(ctx, data):
    try:
        return accept_terms(ctx.user, data["termsId"], get_client_ip())
    except TermsNotFoundError as e:
        raise RPCError("NOT_FOUND", e.message)
    except AcceptanceConflictError as e:
        raise RPCError("CONFLICT", e.message)


@terms_router.query("getCurrentTerms", protected=False)
def get_current_terms_procedure(ctx, _input):
    terms = get_current_terms()
    if terms is None:
        raise RPCError("NOT_FOUND", "No current terms found")
    return {
        **terms.to_public_dict(),
        "isCurrent": terms.is_current,
        "createdAt": terms.created_at.isoformat(),
    }


@terms_router.query("getUserAcceptances")
def get_user_acceptances_procedure(ctx, _input):
    return get_user_acceptances(ctx.user.id)


ROUTERS = {
    terms_router.name: terms_router,
}


@bp.route("/api/rpc/<path:procedure_path>", methods=["GET", "POST"])
def rpc(procedure_path):
    return call_procedure(ROUTERS, procedure_path)
