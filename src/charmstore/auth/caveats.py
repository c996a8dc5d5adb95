#  Copyright 2025 Canonical Ltd.  This software is licensed under the
#  GNU Affero General Public License version 3 (see the file LICENSE).

"""First party caveats understood by the store.

The checkers never capture request state: the entities implicated by an
operation travel in the AuthContext handed to `Checker`, so each function
here can be exercised on its own.
"""

from typing import Iterable, Sequence

from macaroonbakery import checkers

from charmstore.constants import (
    CHARMSTORE_NAMESPACE,
    HAS_AGREED_CONDITION,
    IS_AUTHENTICATED_USER_CONDITION,
    IS_ENTITY_CONDITION,
    OP_ACCESS_WITH_TERMS,
    USERNAME_ATTR,
)
from charmstore.models.identifiers import ResolvedIdentifier

# AuthContext key holding the tuple of entities an operation involves.
ENTITIES_KEY = "charmstore-entities"


def are_allowed_entities(
    entities: Sequence[ResolvedIdentifier], allowed: str
) -> str | None:
    """Check that every entity is listed in the space separated `allowed`.

    An entity is listed when either its user owned or its promulgated URL
    is. Returns the reason of the failure, None on success.
    """
    allowed_urls = set(allowed.split())
    if not entities:
        return (
            "operation does not involve any of the allowed entities "
            f"{allowed}"
        )
    for entity in entities:
        if entity.user_owned_url() in allowed_urls:
            continue
        promulgated_url = entity.promulgated_url()
        if promulgated_url and promulgated_url in allowed_urls:
            continue
        return f"operation on entity {entity} not allowed"
    return None


def check_is_entity(
    ctx: checkers.AuthContext, cond: str, arg: str
) -> str | None:
    return are_allowed_entities(ctx.get(ENTITIES_KEY, ()), arg)


def build_namespace() -> checkers.Namespace:
    return checkers.Namespace(
        {checkers.STD_NAMESPACE: "", CHARMSTORE_NAMESPACE: ""}
    )


def build_checker(namespace: checkers.Namespace) -> checkers.Checker:
    checker = checkers.Checker(namespace=namespace)
    checker.register(
        IS_ENTITY_CONDITION, CHARMSTORE_NAMESPACE, check_is_entity
    )
    return checker


def build_auth_context(
    entities: Iterable[ResolvedIdentifier],
    operation: str,
    declared: dict[str, str],
) -> checkers.AuthContext:
    ctx = checkers.AuthContext().with_value(ENTITIES_KEY, tuple(entities))
    ctx = checkers.context_with_operations(ctx, [operation])
    return checkers.context_with_declared(ctx, declared)


def check_conditions(
    checker: checkers.Checker,
    ctx: checkers.AuthContext,
    conditions: Iterable[str],
) -> str | None:
    """Return the first unsatisfied condition's error, None if all pass."""
    for condition in conditions:
        if error := checker.check_first_party_caveat(ctx, condition):
            return error
    return None


def is_entity_caveat(
    entities: Iterable[ResolvedIdentifier],
) -> checkers.Caveat:
    urls = " ".join(entity.user_owned_url() for entity in entities)
    return checkers.Caveat(
        condition=f"{IS_ENTITY_CONDITION} {urls}",
        namespace=CHARMSTORE_NAMESPACE,
    )


def authenticated_user_caveat(identity_location: str) -> checkers.Caveat:
    return checkers.need_declared_caveat(
        checkers.Caveat(
            location=identity_location,
            condition=IS_AUTHENTICATED_USER_CONDITION,
        ),
        [USERNAME_ATTR],
    )


def has_agreed_caveat(
    terms_location: str, terms: Iterable[str]
) -> checkers.Caveat:
    condition = " ".join([HAS_AGREED_CONDITION, *sorted(set(terms))])
    return checkers.Caveat(location=terms_location, condition=condition)


def deny_terms_caveat() -> checkers.Caveat:
    return checkers.deny_caveat([OP_ACCESS_WITH_TERMS])


def declared_username_caveat(username: str) -> checkers.Caveat:
    return checkers.declared_caveat(USERNAME_ATTR, username)
