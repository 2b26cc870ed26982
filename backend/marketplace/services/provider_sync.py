"""
服务商 → 服务同步

把已审核服务商档案中内嵌的服务物化为 services 集合中的独立文档。
以 (providerId, name) 为键，只插入不存在的文档：已有文档不覆盖，
服务商侧删除的服务也不会被清理。
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional

from pymongo import ASCENDING
from pymongo.errors import DuplicateKeyError

from ..models.service import Service
from .errors import SyncConflict

PROVIDERS_COLLECTION = 'providerprofiles'
SERVICES_COLLECTION = 'services'
SYNC_KEY_INDEX = 'providerId_1_name_1'

APPROVED_PROVIDERS_QUERY = {
    'verificationStatus.overall': 'approved',
    'services': {'$exists': True, '$ne': []},
}


@dataclass
class SyncResult:
    created: int = 0
    skipped: int = 0
    providers: List[Dict[str, Any]] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {'created': self.created, 'skipped': self.skipped, 'providers': self.providers}


def is_syncable(provider: Dict[str, Any]) -> bool:
    """只处理审核通过且带服务列表的服务商"""
    status = (provider.get('verificationStatus') or {}).get('overall')
    return status == 'approved' and bool(provider.get('services'))


def load_approved_providers(db, provider_id: Optional[str] = None) -> List[Dict[str, Any]]:
    query = dict(APPROVED_PROVIDERS_QUERY)
    if provider_id:
        query['userId'] = provider_id
    return list(db[PROVIDERS_COLLECTION].find(query))


def ensure_sync_indexes(collection) -> str:
    """(providerId, name) 唯一索引，并发同步时由存储保证不重复插入"""
    return collection.create_index(
        [('providerId', ASCENDING), ('name', ASCENDING)],
        unique=True,
        name=SYNC_KEY_INDEX,
    )


def _insert_if_absent(collection, doc: Dict[str, Any]) -> bool:
    """Insert doc unless (providerId, name) exists. Returns True when created."""
    key = {'providerId': doc['providerId'], 'name': doc['name']}
    try:
        result = collection.update_one(key, {'$setOnInsert': doc}, upsert=True)
    except DuplicateKeyError as e:
        raise SyncConflict(f"Service already exists: {doc['name']}", detail=str(e)) from e
    return result.upserted_id is not None


def _business_name(provider: Dict[str, Any]) -> str:
    return (provider.get('businessInfo') or {}).get('businessName') or str(provider.get('userId'))


def sync_provider_services(providers: Iterable[Dict[str, Any]], collection,
                           dry_run: bool = False, verbose: bool = True) -> SyncResult:
    """
    同步服务商内嵌服务到 services 集合

    dry_run=True 时只查询不写入，created 表示将会新建的数量。
    """
    result = SyncResult()

    for provider in providers:
        if not is_syncable(provider):
            continue

        report = {
            'providerId': provider.get('userId'),
            'businessName': _business_name(provider),
            'created': [],
            'skipped': [],
        }
        if verbose:
            print(f"\n👔 Processing: {report['businessName']}")

        for embedded in provider.get('services') or []:
            if not isinstance(embedded, dict) or not embedded.get('name'):
                continue
            doc = Service.from_embedded(provider, embedded).to_dict()
            name = doc['name']
            if not name:
                continue

            if dry_run:
                created = collection.find_one({'providerId': doc['providerId'], 'name': name}) is None
            else:
                try:
                    created = _insert_if_absent(collection, doc)
                except SyncConflict as e:
                    print(f"  ⚠ {e.message}")
                    created = False

            if created:
                result.created += 1
                report['created'].append(name)
                if verbose:
                    print(f"  ✓ Created: {name} ({doc['price']['amount']} {doc['price']['currency']}) - {doc['category']}")
            else:
                result.skipped += 1
                report['skipped'].append(name)
                if verbose:
                    print(f"  - Skipped: {name} (already exists)")

        result.providers.append(report)

    return result
