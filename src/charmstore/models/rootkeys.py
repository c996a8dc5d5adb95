# Copyright 2025 Canonical Ltd.  This software is licensed under the
# GNU Affero General Public License version 3 (see the file LICENSE).

from datetime import datetime

from pydantic import BaseModel


class RootKey(BaseModel):
    id: int
    created: datetime
    expiration: datetime
    material: bytes
