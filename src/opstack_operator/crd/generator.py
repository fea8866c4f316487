"""CRD generation from the registered models, and apply to the cluster."""

import hashlib
import json
import logging
from pathlib import Path
import yaml

from .registry import CRDRegistry

logger = logging.getLogger(__name__)

PRINTER_COLUMNS = [
    {"name": "Phase", "type": "string", "jsonPath": ".status.phase"},
    {"name": "Age", "type": "date", "jsonPath": ".metadata.creationTimestamp"},
]


class OpenAPIConverter:
    """Convert pydantic schemas to OpenAPI v3 compatible schemas for CRDs."""

    @staticmethod
    def convert_schema(pydantic_schema):
        """Convert pydantic JSON schema to OpenAPI v3 schema for Kubernetes CRDs."""
        openapi_schema = {"type": "object", "properties": {}}

        if "properties" in pydantic_schema:
            openapi_schema["properties"] = OpenAPIConverter._convert_properties(
                pydantic_schema["properties"], pydantic_schema.get("$defs", {})
            )

        if "required" in pydantic_schema:
            openapi_schema["required"] = pydantic_schema["required"]

        return openapi_schema

    @staticmethod
    def _convert_properties(properties, property_defs):
        return {
            prop_name: OpenAPIConverter._convert_property(prop_schema, property_defs)
            for prop_name, prop_schema in properties.items()
        }

    @staticmethod
    def _convert_property(prop_schema, defs):
        """Convert a single property schema."""
        if "$ref" in prop_schema:
            def_name = prop_schema["$ref"].replace("#/$defs/", "")
            if def_name in defs:
                converted = OpenAPIConverter._convert_property(defs[def_name], defs)
                if "description" in prop_schema:
                    converted["description"] = prop_schema["description"]
                return converted

        # Optional[X] comes out of pydantic as anyOf [X, null]
        if "anyOf" in prop_schema:
            variants = [v for v in prop_schema["anyOf"] if v.get("type") != "null"]
            if len(variants) == 1:
                merged = {
                    k: v for k, v in prop_schema.items() if k not in ("anyOf", "default")
                }
                merged.update(variants[0])
                if prop_schema.get("default") is not None:
                    merged["default"] = prop_schema["default"]
                return OpenAPIConverter._convert_property(merged, defs)

        if prop_schema.get("type") == "array":
            converted = {"type": "array"}
            if "items" in prop_schema:
                converted["items"] = OpenAPIConverter._convert_property(
                    prop_schema["items"], defs
                )
            if "description" in prop_schema:
                converted["description"] = prop_schema["description"]
            return converted

        if prop_schema.get("type") == "object":
            converted = {"type": "object"}
            if "properties" in prop_schema:
                converted["properties"] = OpenAPIConverter._convert_properties(
                    prop_schema["properties"], defs
                )
                if "required" in prop_schema:
                    converted["required"] = prop_schema["required"]
            elif isinstance(prop_schema.get("additionalProperties"), dict) and prop_schema[
                "additionalProperties"
            ].get("type"):
                converted["additionalProperties"] = OpenAPIConverter._convert_property(
                    prop_schema["additionalProperties"], defs
                )
            else:
                converted["x-kubernetes-preserve-unknown-fields"] = True
            if "description" in prop_schema:
                converted["description"] = prop_schema["description"]
            return converted

        result = {}
        for key in ("type", "description", "default", "enum", "format"):
            if key in prop_schema:
                result[key] = prop_schema[key]

        if not result.get("type"):
            result["type"] = "object"
            result["x-kubernetes-preserve-unknown-fields"] = True

        return result


class OpStackCRDManager:
    """Generates and applies the operator's CRDs."""

    def __init__(self, output_dir=None):
        self.output_dir = output_dir or Path("crds/generated")
        self.registry = CRDRegistry()
        self.converter = OpenAPIConverter()

    def generate_all_crds(self, force=False):
        """Generate CRDs only if models changed.

        Returns:
            bool: True if CRDs were generated/updated, False if no changes needed
        """
        self.output_dir.mkdir(parents=True, exist_ok=True)

        current_hash = self._calculate_models_hash()
        hash_file = self.output_dir / ".models_hash"

        if not force and hash_file.exists():
            if hash_file.read_text().strip() == current_hash:
                logger.info("CRD models unchanged, skipping generation")
                return False

        logger.info("Generating CRDs from pydantic models...")

        models = self.registry.get_all_models()
        if not models:
            logger.warning("No CRD models found to generate")
            return False

        generated_files = []
        for model_key, model_info in models.items():
            try:
                crd_def = self.build_crd_definition(model_info)
            except Exception as e:
                logger.error(f"Failed to generate CRD for {model_key}: {e}")
                raise

            filename = f"{crd_def['metadata']['name']}.yaml"
            with open(self.output_dir / filename, "w") as f:
                yaml.dump(crd_def, f, default_flow_style=False, sort_keys=False)

            generated_files.append(filename)
            logger.info(f"Generated CRD: {filename}")

        self._generate_kustomization(generated_files)
        hash_file.write_text(current_hash)

        logger.info(f"Generated {len(generated_files)} CRD files")
        return True

    def build_crd_definition(self, model_info):
        """Build a single CustomResourceDefinition from a registry entry."""
        model_class = model_info["model"]
        group = model_info["group"]
        plural = model_info["plural"]

        try:
            spec_schema = self.converter.convert_schema(model_class.model_json_schema())
            status_schema = self.converter.convert_schema(
                model_info["status_model"].model_json_schema()
            )
        except Exception as e:
            raise ValueError(
                f"Failed to generate schema for {model_class.__name__}: {e}"
            )

        # Status objects carry controller-owned extras (info blocks)
        status_schema["x-kubernetes-preserve-unknown-fields"] = True

        return {
            "apiVersion": "apiextensions.k8s.io/v1",
            "kind": "CustomResourceDefinition",
            "metadata": {"name": f"{plural}.{group}"},
            "spec": {
                "group": group,
                "versions": [
                    {
                        "name": model_info["version"],
                        "served": True,
                        "storage": True,
                        "schema": {
                            "openAPIV3Schema": {
                                "type": "object",
                                "properties": {
                                    "spec": spec_schema,
                                    "status": status_schema,
                                },
                                "required": ["spec"],
                            }
                        },
                        "subresources": {"status": {}},
                        "additionalPrinterColumns": PRINTER_COLUMNS,
                    }
                ],
                "scope": model_info["scope"],
                "names": {
                    "plural": plural,
                    "singular": model_info["singular"],
                    "kind": model_info["kind"],
                    "shortNames": model_info["short_names"],
                },
            },
        }

    def _generate_kustomization(self, filenames):
        kustomization = {
            "apiVersion": "kustomize.config.k8s.io/v1beta1",
            "kind": "Kustomization",
            "resources": sorted(filenames),
        }

        with open(self.output_dir / "kustomization.yaml", "w") as f:
            yaml.dump(kustomization, f, default_flow_style=False)

        logger.info("Generated kustomization.yaml")

    def _calculate_models_hash(self):
        """Calculate hash of all model definitions for change detection."""
        self.registry.discover_models()
        models = self.registry.get_all_models()

        model_data = {}
        for model_key, model_info in sorted(models.items()):
            try:
                model_data[model_key] = {
                    "schema": model_info["model"].model_json_schema(),
                    "status": model_info["status_model"].model_json_schema(),
                    "scope": model_info["scope"],
                }
            except Exception as e:
                logger.warning(f"Could not generate schema for {model_key}: {e}")

        model_json = json.dumps(model_data, sort_keys=True)
        return hashlib.sha256(model_json.encode()).hexdigest()

    def apply_crds_to_cluster(self, api_client=None):
        """Create or replace every CRD in the cluster.

        Args:
            api_client: ApiextensionsV1Api instance (created from the loaded config if omitted)

        Returns:
            int: Number of CRDs applied
        """
        from kubernetes import client

        api_client = api_client or client.ApiextensionsV1Api()

        applied_count = 0
        for crd_name, crd_def in self.get_crds_as_dict().items():
            try:
                existing = api_client.read_custom_resource_definition(crd_name)
                crd_def["metadata"]["resourceVersion"] = existing.metadata.resource_version
                api_client.replace_custom_resource_definition(name=crd_name, body=crd_def)
                logger.info(f"Updated CRD: {crd_name}")
            except client.exceptions.ApiException as e:
                if e.status != 404:
                    logger.error(f"Failed to apply CRD {crd_name}: {e}")
                    continue
                api_client.create_custom_resource_definition(body=crd_def)
                logger.info(f"Created CRD: {crd_name}")

            applied_count += 1

        logger.info(f"Applied {applied_count} CRDs to cluster")
        return applied_count

    def get_crds_as_dict(self):
        """Generate all CRDs as in-memory dictionary objects.

        Returns:
            Dict mapping CRD names to their definitions
        """
        self.registry.discover_models()

        crds = {}
        for model_key, model_info in self.registry.get_all_models().items():
            try:
                crd_def = self.build_crd_definition(model_info)
                crds[crd_def["metadata"]["name"]] = crd_def
            except Exception as e:
                logger.error(f"Failed to generate in-memory CRD for {model_key}: {e}")

        return crds

    def validate_generated_crds(self):
        """Validate that generated CRDs are valid Kubernetes resources."""
        if not self.output_dir.exists():
            logger.error("CRD output directory does not exist")
            return False

        crd_files = [
            f for f in self.output_dir.glob("*.yaml") if f.name != "kustomization.yaml"
        ]
        if not crd_files:
            logger.error("No CRD files found to validate")
            return False

        valid_count = 0
        for crd_file in crd_files:
            with open(crd_file, "r") as f:
                crd_def = yaml.safe_load(f)

            if not isinstance(crd_def, dict):
                logger.error(f"Invalid YAML in {crd_file}")
                continue

            if not all(k in crd_def for k in ("apiVersion", "kind", "metadata", "spec")):
                logger.error(f"Missing required fields in {crd_file}")
                continue

            if crd_def["kind"] != "CustomResourceDefinition":
                logger.error(f"Not a CRD: {crd_file}")
                continue

            valid_count += 1

        logger.info(f"Validated {valid_count}/{len(crd_files)} CRD files")
        return valid_count == len(crd_files)
