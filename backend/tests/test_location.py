"""Tests for the location descriptor codec and playback URL signing."""

from unittest.mock import Mock

import pytest

from botocore.exceptions import ClientError

from tubely.core.errors import MalformedDescriptor, SigningFailed
from tubely.models.video import StorageLocation, Video
from tubely.services.location import LocationSigner, decode_location, encode_location


class TestLocationCodec:
    def test_encode(self) -> None:
        location = StorageLocation(bucket="tubely-videos", key="landscape/ab12.mp4")
        assert encode_location(location) == "tubely-videos,landscape/ab12.mp4"

    def test_decode(self) -> None:
        location = decode_location("tubely-videos,portrait/cd34.mp4")
        assert location.bucket == "tubely-videos"
        assert location.key == "portrait/cd34.mp4"

    def test_decode_inverts_encode(self) -> None:
        location = StorageLocation(bucket="b", key="other/" + "f" * 64 + ".mp4")
        assert decode_location(encode_location(location)) == location

    @pytest.mark.parametrize(
        "descriptor",
        [
            "",
            "no-delimiter",
            ",key.mp4",
            "bucket,",
            ",",
            "bucket,key,extra",
        ],
    )
    def test_decode_rejects_malformed(self, descriptor: str) -> None:
        with pytest.raises(MalformedDescriptor):
            decode_location(descriptor)

    def test_encode_rejects_delimiter_in_key(self) -> None:
        with pytest.raises(MalformedDescriptor):
            encode_location(StorageLocation(bucket="tubely-videos", key="a,b.mp4"))

    def test_encode_rejects_delimiter_in_bucket(self) -> None:
        with pytest.raises(MalformedDescriptor):
            encode_location(StorageLocation(bucket="bad,bucket", key="a.mp4"))


class TestLocationSigner:
    def test_sign_uses_configured_ttl(
        self, location_signer: LocationSigner, mock_storage: Mock
    ) -> None:
        url = location_signer.sign(StorageLocation(bucket="test-bucket", key="landscape/k.mp4"))

        assert url.startswith("https://")
        mock_storage.generate_presigned_download_url.assert_called_once_with(
            "test-bucket", "landscape/k.mp4", expires_in=3600
        )

    def test_sign_video_replaces_descriptor(
        self, location_signer: LocationSigner, test_video: Video
    ) -> None:
        stored = test_video.model_copy(update={"video_url": "test-bucket,landscape/k.mp4"})

        signed = location_signer.sign_video(stored)

        assert signed.video_url.startswith("https://s3.example.com/")
        # The stored record is not modified
        assert stored.video_url == "test-bucket,landscape/k.mp4"

    def test_sign_video_without_upload(
        self, location_signer: LocationSigner, mock_storage: Mock, test_video: Video
    ) -> None:
        assert location_signer.sign_video(test_video) is test_video
        mock_storage.generate_presigned_download_url.assert_not_called()

    def test_sign_video_with_corrupt_descriptor(
        self, location_signer: LocationSigner, test_video: Video
    ) -> None:
        corrupt = test_video.model_copy(update={"video_url": "https://old-style-url"})
        with pytest.raises(MalformedDescriptor):
            location_signer.sign_video(corrupt)

    def test_presign_error(self, location_signer: LocationSigner, mock_storage: Mock) -> None:
        mock_storage.generate_presigned_download_url.side_effect = ClientError(
            {"Error": {"Code": "AccessDenied", "Message": "denied"}}, "GetObject"
        )
        with pytest.raises(SigningFailed):
            location_signer.sign(StorageLocation(bucket="test-bucket", key="k.mp4"))
