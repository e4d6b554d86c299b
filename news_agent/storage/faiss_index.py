"""
FAISS Vector Index Backend

Local, file-backed implementation of the vector index client contract.
Each named index is stored as a FAISS ``IndexIDMap2`` over an inner-product
flat index of L2-normalized vectors (inner product == cosine similarity),
plus a pickled sidecar holding record ids and metadata.
"""

import asyncio
import logging
import os
import pickle
from dataclasses import dataclass, field
from typing import Dict, List, Sequence

import faiss
import numpy as np

from ..capabilities import IndexDescription, IndexMatch, IndexRecord

logger = logging.getLogger(__name__)

INDEX_SUFFIX = '.index'
METADATA_SUFFIX = '.index.metadata'


@dataclass
class _LoadedIndex:
    """In-memory state of one named index."""
    index: faiss.Index
    metric: str = "cosine"
    next_id: int = 0
    # Record id (URL) -> FAISS int64 id, and FAISS id -> metadata
    id_map: Dict[str, int] = field(default_factory=dict)
    metadata: Dict[int, Dict] = field(default_factory=dict)

    @property
    def dimension(self) -> int:
        return self.index.d


class FaissIndexClient:
    """
    File-backed vector index client.

    Mutations are serialized with an asyncio lock and flushed to disk with
    an atomic rename after every write.
    """

    def __init__(self, index_dir: str = "data/vector_index"):
        """
        Initialize the client.

        Args:
            index_dir: Directory holding one ``<name>.index`` file per index
        """
        self.index_dir = index_dir
        os.makedirs(self.index_dir, exist_ok=True)

        self._indexes: Dict[str, _LoadedIndex] = {}
        self._lock = asyncio.Lock()

    def _index_path(self, name: str) -> str:
        return os.path.join(self.index_dir, name + INDEX_SUFFIX)

    def _metadata_path(self, name: str) -> str:
        return os.path.join(self.index_dir, name + METADATA_SUFFIX)

    def _load(self, name: str) -> _LoadedIndex:
        """Return the named index, reading it from disk on first use."""
        if name in self._indexes:
            return self._indexes[name]

        index_path = self._index_path(name)
        if not os.path.exists(index_path):
            raise KeyError(f"Index '{name}' does not exist")

        index = faiss.read_index(index_path)

        metadata_path = self._metadata_path(name)
        state = {}
        if os.path.exists(metadata_path):
            with open(metadata_path, 'rb') as f:
                state = pickle.load(f)

        loaded = _LoadedIndex(
            index=index,
            metric=state.get('metric', 'cosine'),
            next_id=state.get('next_id', 0),
            id_map=state.get('id_map', {}),
            metadata=state.get('metadata', {})
        )

        # Verify synchronization
        if loaded.index.ntotal != len(loaded.id_map):
            raise ValueError(
                f"Index '{name}' has {loaded.index.ntotal} vectors but "
                f"metadata has {len(loaded.id_map)} entries"
            )

        self._indexes[name] = loaded
        return loaded

    def _save(self, name: str, loaded: _LoadedIndex) -> None:
        """Write index and metadata to temp files, then rename both into place."""
        index_path = self._index_path(name)
        metadata_path = self._metadata_path(name)
        temp_index_path = index_path + '.tmp'
        temp_metadata_path = metadata_path + '.tmp'
        state = {
            'metric': loaded.metric,
            'next_id': loaded.next_id,
            'id_map': loaded.id_map,
            'metadata': loaded.metadata,
        }

        try:
            faiss.write_index(loaded.index, temp_index_path)
            with open(temp_metadata_path, 'wb') as f:
                pickle.dump(state, f, protocol=pickle.HIGHEST_PROTOCOL)
            os.replace(temp_index_path, index_path)
            os.replace(temp_metadata_path, metadata_path)
        except Exception:
            for path in (temp_index_path, temp_metadata_path):
                if os.path.exists(path):
                    os.remove(path)
            raise

    def _as_matrix(self, vectors: Sequence[Sequence[float]], dimension: int) -> np.ndarray:
        matrix = np.array(vectors, dtype=np.float32)
        if matrix.ndim != 2 or matrix.shape[1] != dimension:
            got = matrix.shape[-1] if matrix.ndim else 0
            raise ValueError(
                f"Vector dimension ({got}) must match index dimension ({dimension})"
            )
        matrix = np.ascontiguousarray(matrix)
        faiss.normalize_L2(matrix)
        return matrix

    async def list_indexes(self) -> List[str]:
        names = set(self._indexes)
        for filename in os.listdir(self.index_dir):
            if filename.endswith(INDEX_SUFFIX):
                names.add(filename[:-len(INDEX_SUFFIX)])
        return sorted(names)

    async def create_index(self, name: str, dimension: int, metric: str = "cosine") -> None:
        if metric != "cosine":
            raise ValueError(f"Unsupported metric: {metric}")
        if dimension <= 0:
            raise ValueError(f"dimension must be positive, got {dimension}")

        async with self._lock:
            if name in self._indexes or os.path.exists(self._index_path(name)):
                raise ValueError(f"Index '{name}' already exists")

            created = _LoadedIndex(
                index=faiss.IndexIDMap2(faiss.IndexFlatIP(dimension)),
                metric=metric
            )
            await asyncio.to_thread(self._save, name, created)
            self._indexes[name] = created
        logger.info(f"Created FAISS index '{name}' (dimension={dimension}, metric={metric})")

    async def describe_index(self, name: str) -> IndexDescription:
        loaded = self._load(name)
        return IndexDescription(
            name=name,
            dimension=loaded.dimension,
            metric=loaded.metric,
            ready=True
        )

    async def fetch(self, name: str, ids: Sequence[str]) -> Dict[str, IndexRecord]:
        loaded = self._load(name)
        records = {}
        for record_id in ids:
            faiss_id = loaded.id_map.get(record_id)
            if faiss_id is None:
                continue
            records[record_id] = IndexRecord(
                id=record_id,
                values=loaded.index.reconstruct(faiss_id).tolist(),
                metadata=dict(loaded.metadata.get(faiss_id, {}))
            )
        return records

    async def upsert(self, name: str, records: Sequence[IndexRecord]) -> None:
        if not records:
            return

        async with self._lock:
            current = self._load(name)
            matrix = self._as_matrix([r.values for r in records], current.dimension)

            # Mutate a copy; the live state only changes once it is on disk
            updated = _LoadedIndex(
                index=faiss.clone_index(current.index),
                metric=current.metric,
                next_id=current.next_id,
                id_map=dict(current.id_map),
                metadata=dict(current.metadata)
            )

            replaced = [updated.id_map[r.id] for r in records if r.id in updated.id_map]
            if replaced:
                updated.index.remove_ids(np.array(replaced, dtype=np.int64))

            faiss_ids = []
            for record in records:
                faiss_id = updated.id_map.get(record.id)
                if faiss_id is None:
                    faiss_id = updated.next_id
                    updated.next_id += 1
                    updated.id_map[record.id] = faiss_id
                updated.metadata[faiss_id] = dict(record.metadata)
                faiss_ids.append(faiss_id)

            updated.index.add_with_ids(matrix, np.array(faiss_ids, dtype=np.int64))

            # Verify synchronization
            assert updated.index.ntotal == len(updated.id_map), \
                "CRITICAL: Metadata out of sync with index"

            await asyncio.to_thread(self._save, name, updated)
            self._indexes[name] = updated

    async def query(self, name: str, vector: Sequence[float], top_k: int) -> List[IndexMatch]:
        if top_k < 0:
            raise ValueError(f"top_k must be non-negative, got {top_k}")

        loaded = self._load(name)
        if top_k == 0 or loaded.index.ntotal == 0:
            return []

        query_matrix = self._as_matrix([vector], loaded.dimension)
        actual_k = min(top_k, loaded.index.ntotal)
        scores, ids = loaded.index.search(query_matrix, actual_k)

        reverse_ids = {faiss_id: record_id for record_id, faiss_id in loaded.id_map.items()}
        matches = []
        for score, faiss_id in zip(scores[0], ids[0]):
            if faiss_id < 0:
                continue
            matches.append(IndexMatch(
                id=reverse_ids.get(int(faiss_id), ''),
                score=float(score),
                metadata=dict(loaded.metadata.get(int(faiss_id), {}))
            ))
        return matches

    async def count(self, name: str) -> int:
        return self._load(name).index.ntotal
