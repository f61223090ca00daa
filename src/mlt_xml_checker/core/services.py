from typing import FrozenSet, Tuple

AUDIO_FILTERS: FrozenSet[str] = frozenset(
    {
        "audiochannels",
        "audioconvert",
        "audiolevel",
        "audiomap",
        "audioseam",
        "channelcopy",
        "dynamic_loudness",
        "jackrack",
        "ladspa",
        "loudness",
        "loudness_meter",
        "mono",
        "panner",
        "resample",
        "sox",
        "speexresample",
        "swresample",
        "volume",
    }
)

AUDIO_FILTER_PREFIXES: Tuple[str, ...] = ("ladspa.", "lv2.", "vst2.", "sox.")

GPU_PREFIXES: Tuple[str, ...] = ("movit.", "glsl.")

SYNTHETIC_SERVICES: FrozenSet[str] = frozenset({"color", "colour"})


def is_audio_filter(name: str) -> bool:
    if not name:
        return False
    return name in AUDIO_FILTERS or name.startswith(AUDIO_FILTER_PREFIXES)
