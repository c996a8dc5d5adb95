# Copyright 2025 Canonical Ltd.  This software is licensed under the
# GNU Affero General Public License version 3 (see the file LICENSE).

from charmstoreapi.api.handlers.entities import EntitiesHandler
from charmstoreapi.api.handlers.root import RootHandler
from charmstoreapi.common.api.base import API
from charmstoreapi.constants import API_PREFIX

# Fixed paths first: the entity routes match any path.
APIv5 = API(
    prefix=API_PREFIX,
    handlers=[
        RootHandler(),
        EntitiesHandler(),
    ],
)
