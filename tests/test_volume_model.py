"""
Tests for the Volume value object and the size conversions.
"""

import pytest
from pydantic import ValidationError

from volmon.models import (
    BLOCK_SIZE_512,
    ConversionBase,
    Volume,
    VolumeType,
    blocks_to_bytes,
    bytes_to_gb,
)

GIB = 1024 ** 3


class TestVolume:

    def test_used_space_is_derived(self):
        volume = Volume(name="Data", capacity_bytes=5 * GIB, free_space_bytes=1 * GIB)
        assert volume.used_space_bytes == 4 * GIB

    def test_explicit_used_space_is_kept(self):
        volume = Volume(name="Data", capacity_bytes=100, free_space_bytes=40, used_space_bytes=50)
        assert volume.used_space_bytes == 50

    def test_negative_used_space_rejected(self):
        with pytest.raises(ValidationError):
            Volume(name="Data", capacity_bytes=100, free_space_bytes=10, used_space_bytes=-1)

    def test_derived_used_space_must_not_be_negative(self):
        with pytest.raises(ValueError):
            Volume(name="Data", capacity_bytes=10, free_space_bytes=20)

    def test_negative_capacity_rejected(self):
        with pytest.raises(ValidationError):
            Volume(name="Data", capacity_bytes=-1)

    def test_volume_is_immutable(self):
        volume = Volume(name="Data")
        with pytest.raises(ValidationError):
            volume.name = "Other"

    def test_is_match_ignores_metrics(self):
        a = Volume(name="Data", volume_type=VolumeType.APFS, device_node="/dev/disk1s1",
                   mount_point="/Volumes/Data", capacity_bytes=100, free_space_bytes=10,
                   low_space_alert=True)
        b = Volume(name="Data", volume_type=VolumeType.APFS, device_node="/dev/disk1s1",
                   mount_point="/Volumes/Data", capacity_bytes=500, free_space_bytes=400)

        assert a.is_match(a)
        assert a.is_match(b)
        assert b.is_match(a)

    def test_is_match_requires_same_device_node(self):
        a = Volume(name="Data", device_node="/dev/disk1s1", mount_point="/Volumes/Data")
        b = Volume(name="Data", device_node="/dev/disk2s1", mount_point="/Volumes/Data")
        assert not a.is_match(b)
        assert not a.is_match("Data")

    def test_percent_free_and_mounted(self):
        volume = Volume(name="Data", mount_point="/mnt/data", capacity_bytes=200, free_space_bytes=50)
        assert volume.is_mounted
        assert volume.percent_free == pytest.approx(25.0)
        assert volume.percent_used == pytest.approx(75.0)

    def test_percent_free_without_capacity(self):
        volume = Volume(name="Empty")
        assert volume.percent_free == 0.0
        assert not volume.is_mounted

    def test_volume_type_accepts_value(self):
        assert Volume(volume_type="ext4").volume_type is VolumeType.EXT4
        assert VolumeType.is_known("apfs")
        assert not VolumeType.is_known("tmpfs")
        assert not VolumeType.is_known("unknown")


class TestConversions:

    def test_bytes_to_gb_base2(self):
        assert bytes_to_gb(1 * GIB, ConversionBase.BASE_2) == 1.0
        assert bytes_to_gb(100 * 1024 ** 2, ConversionBase.BASE_2) == 0.09765625

    def test_bytes_to_gb_base10(self):
        assert bytes_to_gb(10 ** 9, ConversionBase.BASE_10) == 1.0

    def test_bytes_to_gb_negative_is_not_clamped(self):
        assert bytes_to_gb(-GIB) == -1.0

    def test_bytes_to_gb_rejects_bad_input(self):
        with pytest.raises(TypeError):
            bytes_to_gb("1024")
        with pytest.raises(ValueError):
            bytes_to_gb(1024, base=16)

    def test_blocks_to_bytes(self):
        assert blocks_to_bytes(0) == 0
        assert blocks_to_bytes(1000) == 1_024_000
        assert blocks_to_bytes(3, BLOCK_SIZE_512) == 1536

    def test_blocks_to_bytes_rejects_negative(self):
        with pytest.raises(ValueError):
            blocks_to_bytes(-1)
        with pytest.raises(TypeError):
            blocks_to_bytes(None)
