import json
from dataclasses import dataclass, asdict

@dataclass
class TraceMetrics:
    """Size of a local trace, reported alongside the SVG."""
    node_count:int
    path_count:int
    width:int
    height:int
    speckles_suppressed:int = 0
    foreground:str = "luminance"

    def to_dict(self)->dict:
        return asdict(self)

    def to_json(self)->str:
        return json.dumps(asdict(self), sort_keys=True)
