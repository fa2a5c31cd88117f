#!/usr/bin/env python3
"""Validate fleet data and policy YAML files against the schema."""
import sys
from pathlib import Path

import yaml
from jsonschema import validate, ValidationError

from fleet.errors import ConfigError
from fleet.loader import load_schema, parse_settings


def validate_fleet_file(filepath: Path, schema: dict) -> list[str]:
    """Validate a single fleet data YAML file. Returns list of errors."""
    errors = []
    try:
        with open(filepath) as f:
            data = yaml.safe_load(f)
        validate(instance=data, schema=schema)
    except yaml.YAMLError as e:
        errors.append(f"YAML parse error: {e}")
    except ValidationError as e:
        errors.append(f"Schema validation error: {e.message}")
        if e.path:
            errors.append(f"  at path: {'.'.join(str(p) for p in e.path)}")
    except OSError as e:
        errors.append(f"Error: {e}")
    return errors


def validate_policy_file(filepath: Path) -> list[str]:
    """Validate a policy YAML file, including cross-field rules. Returns list of errors."""
    errors = []
    try:
        with open(filepath) as f:
            data = yaml.safe_load(f)
        parse_settings(data)
    except yaml.YAMLError as e:
        errors.append(f"YAML parse error: {e}")
    except ConfigError as e:
        errors.append(f"Policy error: {e}")
    except OSError as e:
        errors.append(f"Error: {e}")
    return errors


def main():
    """Validate all fleet files in data/ and the root policy.yaml."""
    schema = load_schema()
    root = Path(__file__).parent
    data_dir = root / "data"

    if not data_dir.exists():
        print(f"Error: data directory not found: {data_dir}")
        return 1

    yaml_files = list(data_dir.glob("*.yaml")) + list(data_dir.glob("*.yml"))

    if not yaml_files:
        print(f"Warning: No YAML files found in {data_dir}")

    all_valid = True
    for filepath in sorted(yaml_files):
        errors = validate_fleet_file(filepath, schema)
        if errors:
            print(f"FAIL: {filepath.name}")
            for error in errors:
                print(f"  {error}")
            all_valid = False
        else:
            print(f"OK: {filepath.name}")

    policy_path = root / "policy.yaml"
    if policy_path.exists():
        errors = validate_policy_file(policy_path)
        if errors:
            print(f"FAIL: {policy_path.name}")
            for error in errors:
                print(f"  {error}")
            all_valid = False
        else:
            print(f"OK: {policy_path.name}")

    return 0 if all_valid else 1


if __name__ == "__main__":
    sys.exit(main())
