"""End-to-end tests for sharded upload and download over in-memory backends."""

import asyncio
import json
from unittest.mock import patch

import pytest

from backends.memory import MemoryBackend
from backends.registry import BackendRegistry
from common.constants import MIB
from common.exceptions import (
    ChecksumMismatchError,
    ChunkNotReadyError,
    ConfigurationError,
    ManifestInvalidError,
    TransferCancelledError,
    UploadFailedError,
)
from common.protocol import Manifest
from common.types import BackendName
from conftest import FlakyBackend, make_backends, make_manager
from sharding.chunk_planner import ChunkPlanner
from sharding.encryption import AesGcmEncryptor
from sharding.manager import estimate_upload_time
from sharding.manifest import ManifestManager

FILEBASE = BackendName.FILEBASE
PINATA = BackendName.PINATA
LIGHTHOUSE = BackendName.LIGHTHOUSE


def varied_bytes(size):
    """Bytes whose chunks all differ, so every chunk gets its own content id."""
    return bytes(i % 251 for i in range(size))


def small_planner():
    """Planner with tiny chunks so multi-batch transfers stay cheap."""
    return ChunkPlanner(min_chunks=5, min_chunk_size=100, max_chunk_size=1000, floor=10)


async def store_manifest(backend, manifest_dict):
    result = await backend.upload(json.dumps(manifest_dict).encode('utf-8'), "crafted_chunkmap.json")
    return result.content_id


class TestRoundTrip:
    """Upload followed by download returns the original bytes."""

    @pytest.mark.asyncio
    async def test_small_payload(self, manager):
        payload = b"hello sharded world"

        cid = await manager.upload_sharded(payload, "hello.txt")

        assert await manager.download_sharded(cid) == payload

    @pytest.mark.asyncio
    async def test_many_batches(self, memory_registry):
        manager = make_manager(memory_registry, planner=small_planner())
        payload = bytes(range(256)) * 100

        cid = await manager.upload_sharded(payload, "pattern.bin")
        manifest, downloaded = await manager.download_file(cid)

        assert downloaded == payload
        assert manifest.total_chunks == 26
        assert manifest.count_per_backend() == {FILEBASE: 11, PINATA: 5, LIGHTHOUSE: 10}

    @pytest.mark.asyncio
    async def test_empty_payload(self, manager):
        cid = await manager.upload_sharded(b"", "empty.bin")
        manifest, downloaded = await manager.download_file(cid)

        assert downloaded == b""
        assert manifest.total_chunks == 0
        assert manifest.chunks == ()

    @pytest.mark.asyncio
    async def test_aes_encrypted_payload(self, memory_registry, memory_backends):
        manager = make_manager(memory_registry, encryptor=AesGcmEncryptor())
        payload = b"confidential " * 5000

        cid = await manager.upload_sharded(payload, "secret.txt")
        manifest = await manager.fetch_manifest(cid)

        assert manifest.encryption_key
        assert manifest.encryption_iv
        assert manifest.ciphertext_size == len(payload) + 16
        stored = b"".join(
            memory_backends[c.backend].objects[c.content_id] for c in manifest.chunks
        )
        assert payload[:64] not in stored
        assert await manager.download_sharded(cid) == payload

    @pytest.mark.asyncio
    async def test_aes_empty_payload_has_one_chunk(self, memory_registry):
        manager = make_manager(memory_registry, encryptor=AesGcmEncryptor())

        cid = await manager.upload_sharded(b"", "empty.bin")
        manifest, downloaded = await manager.download_file(cid)

        assert manifest.total_chunks == 1
        assert manifest.chunks[0].size == 16
        assert downloaded == b""


class TestLayout:
    """Chunk sizing and placement recorded in the manifest."""

    @pytest.mark.asyncio
    async def test_reference_layout(self, manager, memory_backends):
        payload = b"\x5a" * 4_500_000

        cid = await manager.upload_sharded(payload, "video.mp4")
        manifest = await manager.fetch_manifest(cid)

        assert manifest.chunk_size == 900_000
        assert manifest.total_chunks == 5
        assert manifest.original_size == 4_500_000
        assert manifest.file_name == "video.mp4"
        assert [c.backend for c in manifest.chunks] == [FILEBASE, FILEBASE, PINATA, LIGHTHOUSE, LIGHTHOUSE]
        assert all(c.size == 900_000 for c in manifest.chunks)
        for chunk in manifest.chunks:
            assert chunk.content_id in memory_backends[chunk.backend].objects
        assert await manager.download_sharded(cid) == payload

    @pytest.mark.asyncio
    async def test_small_file_single_chunk(self, manager, memory_backends):
        payload = varied_bytes(1000)
        cid = await manager.upload_sharded(payload, "small.txt")
        manifest = await manager.fetch_manifest(cid)

        assert manifest.chunk_size == 10_240
        assert manifest.total_chunks == 1
        assert manifest.chunks[0].backend is FILEBASE
        assert manifest.chunks[0].size == 1000
        assert not memory_backends[LIGHTHOUSE].objects
        assert await manager.download_sharded(cid) == payload

    @pytest.mark.asyncio
    async def test_manifest_stored_on_primary(self, manager, memory_backends):
        cid = await manager.upload_sharded(b"x" * 1000, "small.txt")

        assert cid in memory_backends[PINATA].objects
        assert Manifest.from_json(memory_backends[PINATA].objects[cid]).file_name == "small.txt"

    @pytest.mark.asyncio
    async def test_chunk_objects_are_named_after_file(self, manager, memory_backends):
        filebase = memory_backends[FILEBASE]

        with patch.object(filebase, 'upload', wraps=filebase.upload) as upload:
            await manager.upload_sharded(b"x" * 1000, "small.txt")

        assert upload.call_args[0][1] == "small.txt_chunk_0"


class TestIntegrity:
    """Tampering and unusable manifests."""

    @pytest.mark.asyncio
    async def test_tampered_chunk_detected(self, manager, memory_backends):
        cid = await manager.upload_sharded(varied_bytes(300_000), "data.bin")
        manifest = await manager.fetch_manifest(cid)

        victim = manifest.chunks[3]
        objects = memory_backends[victim.backend].objects
        original = objects[victim.content_id]
        objects[victim.content_id] = b"b" + original[1:]

        with pytest.raises(ChecksumMismatchError) as exc_info:
            await manager.download_sharded(cid)

        assert exc_info.value.chunk_index == 3

    @pytest.mark.asyncio
    async def test_truncated_chunk_detected(self, manager, memory_backends):
        cid = await manager.upload_sharded(varied_bytes(300_000), "data.bin")
        manifest = await manager.fetch_manifest(cid)

        victim = manifest.chunks[0]
        objects = memory_backends[victim.backend].objects
        objects[victim.content_id] = objects[victim.content_id][:-1]

        with pytest.raises(ChecksumMismatchError):
            await manager.download_sharded(cid)

    @pytest.mark.asyncio
    async def test_count_mismatch_rejected_before_download(self):
        filebase = FlakyBackend(FILEBASE, retry_base_delay=0)
        backends = make_backends(filebase=filebase)
        manager = make_manager(BackendRegistry(backends))
        chunk_cid = (await filebase.upload(b"chunk")).content_id
        filebase.download_calls = 0

        cid = await store_manifest(backends[0], {
            'version': '1.0',
            'totalChunks': 3,
            'chunkSize': 10240,
            'originalSize': 5,
            'fileName': 'bad.bin',
            'encryptionKey': '',
            'encryptionIV': '',
            'chunks': [
                {'index': 0, 'service': 'filebase', 'cid': chunk_cid, 'checksum': 'aa' * 32, 'size': 5},
                {'index': 1, 'service': 'filebase', 'cid': chunk_cid, 'checksum': 'aa' * 32, 'size': 5},
            ],
        })

        with pytest.raises(ManifestInvalidError):
            await manager.download_sharded(cid)

        assert filebase.download_calls == 0

    @pytest.mark.asyncio
    async def test_unsupported_version_rejected(self, manager, memory_backends):
        cid = await store_manifest(memory_backends[PINATA], {
            'version': '9.9', 'totalChunks': 0, 'chunks': [],
        })

        with pytest.raises(ManifestInvalidError):
            await manager.download_sharded(cid)

    @pytest.mark.asyncio
    async def test_cid_of_ordinary_file_is_not_a_manifest(self, manager, memory_backends):
        cid = (await memory_backends[PINATA].upload(b"\x89PNG not json")).content_id

        with pytest.raises(ManifestInvalidError):
            await manager.download_sharded(cid)

    @pytest.mark.asyncio
    async def test_pending_chunk_not_ready(self, manager, memory_backends):
        cid = await store_manifest(memory_backends[PINATA], {
            'version': '1.0',
            'totalChunks': 1,
            'chunkSize': 10240,
            'originalSize': 5,
            'fileName': 'pending.bin',
            'encryptionKey': '',
            'encryptionIV': '',
            'chunks': [
                {'index': 0, 'service': 'lighthouse', 'cid': 'pending', 'checksum': 'aa' * 32, 'size': 5},
            ],
        })

        with pytest.raises(ChunkNotReadyError) as exc_info:
            await manager.download_sharded(cid)

        assert exc_info.value.backend == 'lighthouse'

    @pytest.mark.asyncio
    async def test_non_string_key_material_rejected(self, memory_registry, memory_backends):
        manager = make_manager(memory_registry, encryptor=AesGcmEncryptor())
        cid = await manager.upload_sharded(b"hello", "hello.txt")
        wire = (await manager.fetch_manifest(cid)).to_dict()
        wire['encryptionKey'] = 12345

        forged = await store_manifest(memory_backends[PINATA], wire)

        with pytest.raises(ManifestInvalidError):
            await manager.download_sharded(forged)

    @pytest.mark.asyncio
    async def test_non_string_checksum_rejected_before_download(self):
        filebase = FlakyBackend(FILEBASE, retry_base_delay=0)
        backends = make_backends(filebase=filebase)
        manager = make_manager(BackendRegistry(backends))
        cid = await manager.upload_sharded(b"x" * 1000, "numbers.bin")
        wire = (await manager.fetch_manifest(cid)).to_dict()
        wire['chunks'][0]['checksum'] = 12345
        filebase.download_calls = 0

        forged = await store_manifest(backends[0], wire)

        with pytest.raises(ManifestInvalidError):
            await manager.download_sharded(forged)

        assert filebase.download_calls == 0


class TestFailures:
    """Retry, exhaustion, cancellation and configuration problems."""

    @pytest.mark.asyncio
    async def test_transient_failures_are_retried(self):
        flaky = FlakyBackend(LIGHTHOUSE, upload_failures=2, max_retries=1, retry_base_delay=0)
        manager = make_manager(BackendRegistry(make_backends(lighthouse=flaky)))
        payload = b"r" * 500_000

        cid = await manager.upload_sharded(payload, "retry.bin")

        assert await manager.download_sharded(cid) == payload
        assert flaky.upload_calls == 4

    @pytest.mark.asyncio
    async def test_download_retry(self):
        flaky = FlakyBackend(LIGHTHOUSE, download_failures=1, retry_base_delay=0)
        manager = make_manager(BackendRegistry(make_backends(lighthouse=flaky)))
        payload = b"d" * 500_000
        cid = await manager.upload_sharded(payload, "retry.bin")

        assert await manager.download_sharded(cid) == payload

    @pytest.mark.asyncio
    async def test_exhausted_upload_publishes_no_manifest(self):
        broken = FlakyBackend(LIGHTHOUSE, upload_failures=-1, max_retries=1, retry_base_delay=0)
        manager = make_manager(BackendRegistry(make_backends(lighthouse=broken)))

        with patch.object(ManifestManager, 'publish') as publish:
            with pytest.raises(UploadFailedError) as exc_info:
                await manager.upload_sharded(b"z" * 500_000, "doomed.bin")

        publish.assert_not_called()
        assert exc_info.value.backend == 'lighthouse'
        assert exc_info.value.chunk_index in (3, 4)
        assert broken.upload_calls >= 3

    @pytest.mark.asyncio
    async def test_cancelled_upload(self, manager, memory_backends):
        cancel = asyncio.Event()
        cancel.set()

        with pytest.raises(TransferCancelledError):
            await manager.upload_sharded(b"c" * 500_000, "cancel.bin", cancel_event=cancel)

        assert not memory_backends[PINATA].objects

    @pytest.mark.asyncio
    async def test_missing_backend_fails_before_any_upload(self):
        backends = make_backends(lighthouse=MemoryBackend(LIGHTHOUSE, configured=False))
        manager = make_manager(BackendRegistry(backends))

        with pytest.raises(ConfigurationError) as exc_info:
            await manager.upload_sharded(b"q" * 500_000, "config.bin")

        assert exc_info.value.backend == 'lighthouse'
        assert all(not backend.objects for backend in backends)

    @pytest.mark.asyncio
    async def test_unneeded_backend_may_be_unconfigured(self):
        backends = make_backends(lighthouse=MemoryBackend(LIGHTHOUSE, configured=False))
        manager = make_manager(BackendRegistry(backends))

        cid = await manager.upload_sharded(b"tiny", "tiny.txt")

        assert await manager.download_sharded(cid) == b"tiny"

    @pytest.mark.asyncio
    async def test_nothing_configured(self):
        backends = [MemoryBackend(name, configured=False) for name in (PINATA, FILEBASE, LIGHTHOUSE)]
        manager = make_manager(BackendRegistry(backends))

        with pytest.raises(ConfigurationError):
            await manager.upload_sharded(b"q", "q.txt")


class TestProgress:
    """Progress reported through the caller's listener."""

    @pytest.mark.asyncio
    async def test_upload_progress(self, manager):
        snapshots = []

        await manager.upload_sharded(b"p" * 4_500_000, "video.mp4", on_progress=snapshots.append)

        assert [s.uploaded for s in snapshots] == [1, 2, 3, 4, 5]
        last = snapshots[-1]
        assert last.overall == 100.0
        assert last.per_backend_count == {FILEBASE: 2, PINATA: 1, LIGHTHOUSE: 2}
        assert last.per_backend_percent == {FILEBASE: 100.0, PINATA: 100.0, LIGHTHOUSE: 100.0}

    @pytest.mark.asyncio
    async def test_download_progress(self, manager):
        cid = await manager.upload_sharded(b"p" * 300_000, "p.bin")
        snapshots = []

        await manager.download_sharded(cid, on_progress=snapshots.append)

        assert [s.downloaded for s in snapshots] == [1, 2, 3, 4, 5]
        assert snapshots[-1].total == 5
        assert snapshots[-1].overall == 100.0


def test_service_stats(manager):
    assert manager.get_service_stats() == {
        'pinata': {'usage': 'Unknown', 'limit': 'in-memory'},
        'filebase': {'usage': 'Unknown', 'limit': 'in-memory'},
        'lighthouse': {'usage': 'Unknown', 'limit': 'in-memory'},
    }


@pytest.mark.parametrize("size, expected", [
    (0, "~0 seconds"),
    (MIB, "~1 seconds"),
    (90 * MIB, "~2 minutes"),
    (2 * 3600 * MIB, "~2 hours"),
])
def test_estimate_upload_time(size, expected):
    assert estimate_upload_time(size) == expected
