# Copyright 2025 Canonical Ltd.  This software is licensed under the
# GNU Affero General Public License version 3 (see the file LICENSE).

from datetime import timedelta

# The wildcard principal matching any user, authenticated or not.
EVERYONE = "everyone"

# Members of this group may promulgate entities.
PROMULGATORS_GROUP = "charmers"

# Operation tag for fetching archives of entities that require terms to be
# agreed. Every other authorized operation uses OP_OTHER.
OP_ACCESS_WITH_TERMS = "op-get-with-terms"
OP_OTHER = "op-other"

# Attribute declared by the identity service in discharge macaroons.
USERNAME_ATTR = "username"

# First party caveat restricting a macaroon to a set of entities.
IS_ENTITY_CONDITION = "is-entity"

# Third party caveat condition understood by the terms service.
HAS_AGREED_CONDITION = "has-agreed"

# Third party caveat condition understood by the identity service.
IS_AUTHENTICATED_USER_CONDITION = "is-authenticated-user"

# Checker namespace of the caveats defined by the store.
CHARMSTORE_NAMESPACE = "charmstore"

DEFAULT_MACAROON_EXPIRY = timedelta(hours=24)
DELEGATABLE_MACAROON_EXPIRY = timedelta(minutes=1)

# Cookie used by the web UI to carry its macaroons.
UI_AUTH_COOKIE_NAME = "macaroon-ui"
# Suffix of the cookie clients store discharged macaroons under.
AUTH_COOKIE_SUFFIX = "authn"

ADMIN_AUDIT_USER = "admin"
