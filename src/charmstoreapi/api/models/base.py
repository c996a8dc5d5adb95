# Copyright 2025 Canonical Ltd.  This software is licensed under the
# GNU Affero General Public License version 3 (see the file LICENSE).

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_pascal


class StoreModel(BaseModel):
    """Base of the request and response bodies.

    Fields are exposed with capitalized names on the wire, as existing
    store clients expect.
    """

    model_config = ConfigDict(alias_generator=to_pascal, populate_by_name=True)
