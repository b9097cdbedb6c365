"""
Preset export helpers: JSON for the clipboard, Audacity XML for download,
and the Boost/Cut/Neutral wording used by the EQ table.
"""

import json
import os
from typing import Sequence

from eqcreator.analysis.models import VocalProfile

DEFAULT_XML_FILENAME = "gemini-eq-preset.xml"
ACTION_THRESHOLD_DB = 0.1


def to_json(profile: VocalProfile, settings: Sequence) -> str:
    """Profile and EQ settings as pretty-printed camelCase JSON."""
    payload = {
        "vocalProfile": {
            "description": profile.description,
            "fundamentalRange": profile.fundamental_range,
            "keyCharacteristics": list(profile.key_characteristics),
        },
        "eqSettings": [
            {"frequency": s.frequency, "gain": s.gain} for s in settings
        ],
    }
    return json.dumps(payload, indent=2)


def save_audacity_xml(xml: str, path: str) -> str:
    """Write the preset XML to ``path`` (UTF-8) and return the path."""
    directory = os.path.dirname(path)
    if directory:
        os.makedirs(directory, exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        f.write(xml)
    return path


def gain_action(gain: float) -> str:
    if gain > ACTION_THRESHOLD_DB:
        return "Boost"
    if gain < -ACTION_THRESHOLD_DB:
        return "Cut"
    return "Neutral"


def format_gain(gain: float) -> str:
    """One decimal place, explicit '+' for boosts: 3 -> '+3.0'."""
    return f"{'+' if gain > 0 else ''}{gain:.1f}"
