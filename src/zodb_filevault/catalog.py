from BTrees.OOBTree import OOBTree
from BTrees.OOBTree import OOTreeSet
from zodb_filevault.interfaces import IFileCatalog
from zodb_filevault.models import FileRecord
from zope.interface import implementer

import uuid


FILES_KEY = "filevault.files"
OWNERS_KEY = "filevault.owners"


def bootstrap(root):
    """Create the catalog containers in a fresh database root."""
    if FILES_KEY not in root:
        root[FILES_KEY] = OOBTree()
    if OWNERS_KEY not in root:
        root[OWNERS_KEY] = OOBTree()


@implementer(IFileCatalog)
class FileCatalog:
    """File records kept in a ZODB connection root.

    Changes join the connection's current transaction; committing is up to
    the caller.
    """

    def __init__(self, root, clock):
        self._files = root[FILES_KEY]
        self._owners = root[OWNERS_KEY]
        self._clock = clock

    def create(
        self,
        owner_id,
        key,
        provider_id,
        original_name,
        size,
        content_type,
        location=None,
    ):
        file_id = uuid.uuid4().hex
        created_at = self._clock()
        record = FileRecord(
            file_id=file_id,
            owner_id=owner_id,
            key=key,
            provider_id=provider_id,
            original_name=original_name,
            size=size,
            content_type=content_type,
            created_at=created_at,
            location=location,
        )
        self._files[file_id] = record
        index = self._owners.get(owner_id)
        if index is None:
            index = self._owners[owner_id] = OOTreeSet()
        index.insert((created_at.isoformat(), file_id))
        return record

    def find_by_id(self, file_id):
        return self._files.get(file_id)

    def list_by_owner(self, owner_id):
        index = self._owners.get(owner_id)
        if index is None:
            return []
        return [self._files[file_id] for _created, file_id in reversed(list(index))]

    def delete(self, file_id):
        record = self._files.pop(file_id, None)
        if record is None:
            return
        index = self._owners.get(record.owner_id)
        if index is not None:
            index.remove((record.created_at.isoformat(), file_id))

    def __len__(self):
        return len(self._files)
