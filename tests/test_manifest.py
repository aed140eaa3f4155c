"""Tests for manifest building, validation, publication and retrieval."""

import dataclasses
from unittest.mock import patch

import pytest

from backends.memory import MemoryBackend
from backends.registry import BackendRegistry
from common.exceptions import (
    AllBackendsFailedError,
    ChunkNotReadyError,
    ConfigurationError,
    ManifestInvalidError,
)
from common.protocol import ChunkRecord, Manifest
from common.types import BackendName
from sharding.manifest import EncryptionMeta, FileMeta, ManifestBuilder, ManifestManager


def record(index, backend=BackendName.FILEBASE, cid=None, size=100):
    return ChunkRecord(
        index=index,
        backend=backend,
        content_id=cid if cid is not None else f"Qm{index}",
        checksum=f"{index:064x}",
        size=size,
    )


def make_manifest(total=3, **changes):
    manifest = Manifest(
        total_chunks=total,
        chunk_size=100,
        original_size=total * 100,
        file_name="notes.txt",
        encryption_key="",
        encryption_iv="",
        chunks=tuple(record(i) for i in range(total)),
    )
    return dataclasses.replace(manifest, **changes)


class TestManifestBuilder:
    """Collecting chunk records into a manifest."""

    def test_build_orders_chunks_by_index(self):
        builder = ManifestBuilder(3, 100, 300, "notes.txt", "key", "iv")
        for index in (2, 0, 1):
            builder.add(record(index))

        manifest = builder.build()

        assert [c.index for c in manifest.chunks] == [0, 1, 2]
        assert manifest.encryption_key == "key"
        assert manifest.encryption_iv == "iv"

    def test_missing_chunk_blocks_build(self):
        builder = ManifestBuilder(2, 100, 200, "notes.txt")
        builder.add(record(0))

        assert builder.missing() == [1]
        assert not builder.is_complete
        with pytest.raises(ChunkNotReadyError) as exc_info:
            builder.build()
        assert exc_info.value.chunk_index == 1
        assert exc_info.value.backend == "unassigned"

    def test_pending_cid_blocks_build(self):
        builder = ManifestBuilder(1, 100, 100, "notes.txt")
        builder.add(record(0, backend=BackendName.LIGHTHOUSE, cid="pending"))

        with pytest.raises(ChunkNotReadyError) as exc_info:
            builder.build()
        assert exc_info.value.backend == "lighthouse"

    def test_out_of_range_and_duplicate_indices(self):
        builder = ManifestBuilder(2, 100, 200, "notes.txt")
        builder.add(record(0))

        with pytest.raises(ManifestInvalidError):
            builder.add(record(0))
        with pytest.raises(ManifestInvalidError):
            builder.add(record(2))

    def test_empty_manifest(self):
        manifest = ManifestBuilder(0, 10240, 0, "empty.bin").build()

        assert manifest.total_chunks == 0
        assert manifest.chunks == ()


class TestManifestValidation:
    """Structural checks applied before any chunk is downloaded."""

    @pytest.fixture
    def manifests(self, memory_registry):
        return ManifestManager(memory_registry)

    def test_valid_manifest(self, manifests):
        assert manifests.validate(make_manifest())

    def test_empty_manifest_is_valid(self, manifests):
        assert manifests.validate(make_manifest(total=0))

    @pytest.mark.parametrize("changes", [
        {'version': '2.0'},
        {'total_chunks': 4},
        {'total_chunks': -1},
        {'total_chunks': '3'},
        {'total_chunks': True},
        {'file_name': None},
        {'encryption_key': 12345},
        {'encryption_iv': ['iv']},
    ])
    def test_header_problems(self, manifests, changes):
        assert not manifests.validate(make_manifest(**changes))

    @pytest.mark.parametrize("bad_record", [
        record(1, cid=""),
        dataclasses.replace(record(1), checksum=""),
        dataclasses.replace(record(1), checksum="aa"),
        dataclasses.replace(record(1), checksum=12345),
        dataclasses.replace(record(1), checksum="zz" * 32),
        dataclasses.replace(record(1), size=-5),
        dataclasses.replace(record(1), size="100"),
        dataclasses.replace(record(1), index="1"),
        record(5),
    ])
    def test_chunk_problems(self, manifests, bad_record):
        chunks = (record(0), bad_record, record(2))
        assert not manifests.validate(make_manifest(chunks=chunks))

    def test_duplicate_indices_rejected(self, manifests):
        chunks = (record(0), record(0), record(2))
        assert not manifests.validate(make_manifest(chunks=chunks))


class TestManifestManager:
    """Publishing to the primary backend and fetching back."""

    def test_build_from_records(self, memory_registry):
        manifest = ManifestManager(memory_registry).build(
            [record(1), record(0)],
            FileMeta(file_name="notes.txt", original_size=150, chunk_size=100),
            EncryptionMeta(key="k", iv="i"),
        )

        assert manifest.total_chunks == 2
        assert manifest.original_size == 150
        assert manifest.file_name == "notes.txt"

    def test_build_with_too_few_records(self, memory_registry):
        with pytest.raises(ChunkNotReadyError):
            ManifestManager(memory_registry).build(
                [record(0)],
                FileMeta("notes.txt", 200, 100),
                EncryptionMeta("", ""),
                total_chunks=2,
            )

    @pytest.mark.asyncio
    async def test_publish_stores_on_primary(self, memory_registry, memory_backends):
        manifest = make_manifest()

        cid = await ManifestManager(memory_registry).publish(manifest)

        pinata = memory_backends[BackendName.PINATA]
        assert pinata.objects[cid] == manifest.to_json()
        assert not memory_backends[BackendName.FILEBASE].objects

    @pytest.mark.asyncio
    async def test_publish_uses_chunkmap_name(self, memory_registry, memory_backends):
        pinata = memory_backends[BackendName.PINATA]

        with patch.object(pinata, 'upload', wraps=pinata.upload) as upload:
            await ManifestManager(memory_registry).publish(make_manifest())

        assert upload.call_args[0][1] == "notes.txt_chunkmap.json"

    @pytest.mark.asyncio
    async def test_publish_skips_unconfigured_primary(self):
        pinata = MemoryBackend(BackendName.PINATA, configured=False)
        filebase = MemoryBackend(BackendName.FILEBASE)
        manifests = ManifestManager(BackendRegistry([pinata, filebase]))

        cid = await manifests.publish(make_manifest())

        assert cid in filebase.objects
        assert not pinata.objects

    @pytest.mark.asyncio
    async def test_publish_without_configured_backend(self):
        registry = BackendRegistry([MemoryBackend(BackendName.PINATA, configured=False)])

        with pytest.raises(ConfigurationError):
            await ManifestManager(registry).publish(make_manifest())

    @pytest.mark.asyncio
    async def test_publish_rejects_invalid_manifest(self, memory_registry, memory_backends):
        with pytest.raises(ManifestInvalidError):
            await ManifestManager(memory_registry).publish(make_manifest(total_chunks=7))

        assert not memory_backends[BackendName.PINATA].objects

    @pytest.mark.asyncio
    async def test_fetch_round_trip(self, memory_registry):
        manifests = ManifestManager(memory_registry)
        manifest = make_manifest()

        cid = await manifests.publish(manifest)

        assert await manifests.fetch(cid) == manifest

    @pytest.mark.asyncio
    async def test_fetch_falls_back_to_other_backends(self, memory_registry, memory_backends):
        manifest = make_manifest()
        lighthouse = memory_backends[BackendName.LIGHTHOUSE]
        cid = (await lighthouse.upload(manifest.to_json())).content_id

        assert await ManifestManager(memory_registry).fetch(cid) == manifest

    @pytest.mark.asyncio
    async def test_fetch_unknown_cid(self, memory_registry):
        with pytest.raises(AllBackendsFailedError):
            await ManifestManager(memory_registry).fetch("bafkmissing")

    @pytest.mark.asyncio
    async def test_fetch_non_manifest_object(self, memory_registry, memory_backends):
        pinata = memory_backends[BackendName.PINATA]
        cid = (await pinata.upload(b"just some file")).content_id

        with pytest.raises(ManifestInvalidError):
            await ManifestManager(memory_registry).fetch(cid)
