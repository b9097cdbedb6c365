"""
Analysis result types.

The remote model answers in camelCase JSON:
    {"vocalProfile": {"description", "fundamentalRange", "keyCharacteristics"},
     "eqPreset": [{"frequency", "gain"}, ...],
     "audacityXml": "<...>"}
"""

from typing import NamedTuple


class AnalysisError(Exception):
    """Remote analysis failed; ``str(err)`` is safe to show to the user."""


class AdjustmentPoint(NamedTuple):
    """One graphic-EQ band: center frequency in Hz and gain in dB."""

    frequency: float
    gain: float


class VocalProfile(NamedTuple):
    description: str
    fundamental_range: str
    key_characteristics: list[str]


class AnalysisResult(NamedTuple):
    vocal_profile: VocalProfile
    eq_preset: list[AdjustmentPoint]
    audacity_xml: str

    @classmethod
    def from_json(cls, payload: dict) -> "AnalysisResult":
        """Build a result from the decoded JSON reply; AnalysisError if malformed."""
        try:
            profile = payload["vocalProfile"]
            vocal_profile = VocalProfile(
                description=str(profile["description"]),
                fundamental_range=str(profile["fundamentalRange"]),
                key_characteristics=[str(c) for c in profile["keyCharacteristics"]],
            )
            eq_preset = [
                AdjustmentPoint(float(p["frequency"]), float(p["gain"]))
                for p in payload["eqPreset"]
            ]
            audacity_xml = str(payload["audacityXml"])
        except (KeyError, TypeError, ValueError) as e:
            raise AnalysisError(f"Malformed analysis response: {e}") from e
        return cls(vocal_profile, eq_preset, audacity_xml)
