from __future__ import annotations

import numpy as np
import pytest

from conftest import sine_buffer
from eqcreator.audio.context import (
    FFT_SIZE, AudioContext, AudioContextError, blackman_window,
)
from eqcreator.audio.decoder import AudioBuffer


def _graph(clock, buffer):
    ctx = AudioContext(clock)
    source = ctx.create_buffer_source()
    source.buffer = buffer
    analyser = ctx.create_analyser()
    source.connect(analyser)
    return ctx, source, analyser


def test_analyser_defaults():
    analyser = AudioContext().create_analyser()
    assert analyser.fft_size == FFT_SIZE == 2048
    assert analyser.frequency_bin_count == 1024


@pytest.mark.parametrize("size", [16, 1000, 65536, 0])
def test_fft_size_must_be_power_of_two_in_range(size):
    analyser = AudioContext().create_analyser()
    with pytest.raises(ValueError):
        analyser.fft_size = size


def test_fft_size_change_resizes_output(clock):
    ctx, source, analyser = _graph(clock, sine_buffer())
    analyser.fft_size = 512
    source.start(0, 0.1, 5)
    clock.advance(0.1)
    assert analyser.get_byte_frequency_data().shape == (256,)


def test_sine_peaks_at_expected_bin(clock):
    ctx, source, analyser = _graph(clock, sine_buffer(freq=1000.0))
    source.start(0, 0.1, 5)
    clock.advance(0.1)
    data = analyser.get_byte_frequency_data()
    assert data.dtype == np.uint8
    assert data.shape == (1024,)
    peak = int(np.argmax(data))
    assert abs(peak - 1000 * 2048 / 44100) <= 1
    assert data[peak] > 200
    assert data[600] < data[peak]


def test_stereo_buffers_are_down_mixed(clock):
    mono = sine_buffer(freq=440.0)
    stereo = sine_buffer(freq=440.0, channels=2)
    _, s1, a1 = _graph(clock, mono)
    _, s2, a2 = _graph(clock, stereo)
    s1.start(0, 0.1, 5)
    s2.start(0, 0.1, 5)
    clock.advance(0.1)
    np.testing.assert_array_equal(a1.get_byte_frequency_data(), a2.get_byte_frequency_data())


def test_nothing_rendered_before_playback_starts(clock):
    ctx, source, analyser = _graph(clock, sine_buffer())
    source.start(0, 0.1, 5)
    assert not analyser.get_byte_frequency_data().any()


def test_silent_buffer_gives_all_zero_bytes(clock):
    silent = AudioBuffer(np.zeros((1, 44100), dtype=np.float32), 44100)
    ctx, source, analyser = _graph(clock, silent)
    source.start(0, 0.1, 5)
    clock.advance(0.1)
    assert not analyser.get_byte_frequency_data().any()


def test_clip_shorter_than_offset_plays_nothing(clock):
    short = sine_buffer(duration=0.05)
    ctx, source, analyser = _graph(clock, short)
    source.start(0, min(0.1, short.duration), 5)
    clock.advance(0.1)
    assert not analyser.get_byte_frequency_data().any()
    assert not source.playing


def test_stopped_source_renders_silence(clock):
    ctx, source, analyser = _graph(clock, sine_buffer())
    source.start(0, 0.1, 5)
    clock.advance(0.04)
    source.stop()
    clock.advance(0.1)
    assert not source.render(ctx.current_time, 2048).any()


def test_render_respects_duration_limit(clock):
    ctx, source, _ = _graph(clock, sine_buffer(duration=2.0))
    source.start(0, 0.0, 0.5)
    clock.advance(0.6)
    assert not source.render(ctx.current_time, 2048).any()
    assert source.render(0.4, 2048).any()


def test_source_playing_flag(clock):
    ctx, source, _ = _graph(clock, sine_buffer(duration=1.0))
    assert not source.playing
    source.start(0, 0.1, 5)
    clock.advance(0.1)
    assert source.playing
    clock.advance(1.0)
    assert not source.playing


def test_source_start_rules(clock):
    ctx = AudioContext(clock)
    source = ctx.create_buffer_source()
    with pytest.raises(AudioContextError):
        source.start()
    with pytest.raises(AudioContextError):
        source.stop()
    source.buffer = sine_buffer()
    source.start()
    with pytest.raises(AudioContextError):
        source.start()


def test_close_is_once_only_and_blocks_new_nodes(clock):
    ctx = AudioContext(clock)
    assert ctx.state == "running"
    ctx.close()
    assert ctx.state == "closed"
    with pytest.raises(AudioContextError):
        ctx.close()
    with pytest.raises(AudioContextError):
        ctx.create_buffer_source()
    with pytest.raises(AudioContextError):
        ctx.create_analyser()


def test_current_time_freezes_on_close(clock):
    ctx = AudioContext(clock)
    clock.advance(0.25)
    ctx.close()
    clock.advance(5.0)
    assert ctx.current_time == pytest.approx(0.25)


def test_blackman_window_shape():
    w = blackman_window(8)
    assert w.dtype == np.float32
    assert w[0] == pytest.approx(0.0, abs=1e-6)
    assert w[4] == pytest.approx(1.0, abs=1e-6)
