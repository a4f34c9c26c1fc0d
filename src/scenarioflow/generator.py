from importlib.resources import files
from pathlib import Path
import yaml
from .ir import ScenarioDocument

TEMPLATES = ("branching", "signals", "memo")


def _load_template_yaml(name: str) -> str:
    pkg = files('scenarioflow.templates')
    return (pkg / f"{name}.yaml").read_text()


def generate_scenario_from_template(template: str) -> ScenarioDocument:
    template = template.lower()
    if template not in TEMPLATES:
        raise ValueError(f"Unknown template '{template}'. Use one of: {', '.join(TEMPLATES)}")
    data = yaml.safe_load(_load_template_yaml(template))
    return ScenarioDocument(**data)


def save_scenario_yaml(doc: ScenarioDocument, path: Path):
    path.write_text(yaml.safe_dump(doc.dump(), sort_keys=False))
