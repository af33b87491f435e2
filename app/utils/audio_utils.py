"""Audio utility functions"""

import base64
import binascii
import logging
import struct
from typing import Iterable, NamedTuple

logger = logging.getLogger(__name__)

WAV_HEADER_SIZE = 44
WAVE_FORMAT_MULAW = 7  # G.711 mu-law, what Twilio media streams carry


class WavHeader(NamedTuple):
    riff_size: int
    format_code: int
    channels: int
    sample_rate: int
    byte_rate: int
    block_align: int
    bits_per_sample: int
    data_length: int


def build_wav_header(
    data_length: int,
    sample_rate: int = 8000,
    channels: int = 1,
    bits_per_sample: int = 8,
    format_code: int = WAVE_FORMAT_MULAW,
) -> bytes:
    """Build the fixed 44-byte RIFF/WAVE header for `data_length` payload bytes"""
    block_align = channels * bits_per_sample // 8
    byte_rate = sample_rate * block_align
    return struct.pack(
        "<4sI4s4sIHHIIHH4sI",
        b"RIFF",
        36 + data_length,
        b"WAVE",
        b"fmt ",
        16,  # fmt chunk size
        format_code,
        channels,
        sample_rate,
        byte_rate,
        block_align,
        bits_per_sample,
        b"data",
        data_length,
    )


def encode_wav(payload: bytes, sample_rate: int = 8000, channels: int = 1) -> bytes:
    """Wrap raw 8-bit mu-law samples in a playable WAV container"""
    return build_wav_header(len(payload), sample_rate=sample_rate, channels=channels) + payload


def read_wav_header(data: bytes) -> WavHeader:
    """Parse the header written by build_wav_header"""
    if len(data) < WAV_HEADER_SIZE:
        raise ValueError(f"WAV data too short: {len(data)} bytes")
    riff, riff_size, wave, fmt, _, *fields, data_tag, data_length = struct.unpack(
        "<4sI4s4sIHHIIHH4sI", data[:WAV_HEADER_SIZE]
    )
    if riff != b"RIFF" or wave != b"WAVE" or fmt != b"fmt " or data_tag != b"data":
        raise ValueError("Not a canonical WAV header")
    return WavHeader(riff_size, *fields, data_length)


def decode_frame(payload: str) -> bytes:
    """Decode one base64 media frame, ValueError if it is not valid base64"""
    try:
        return base64.b64decode(payload, validate=True)
    except (binascii.Error, TypeError) as e:
        raise ValueError(f"Invalid base64 audio frame: {e}") from e


def concat_frames(frames: Iterable[bytes]) -> bytes:
    return b"".join(frames)


def calculate_duration(data_size: int, sample_rate: int, channels: int, bit_depth: int = 8) -> float:
    """Calculate audio duration in seconds from data size"""
    bytes_per_sample = (bit_depth // 8) * channels
    samples = data_size / bytes_per_sample
    return samples / sample_rate
