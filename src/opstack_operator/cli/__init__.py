import typer
from typing_extensions import Annotated
from typing import List, Optional

from dotenv import load_dotenv, find_dotenv

load_dotenv(find_dotenv())

app = typer.Typer(
    help="OP Stack operator: runs Optimism L2 networks on Kubernetes",
    add_completion=False,
)


@app.command("operator")
def run_operator(
    namespace: Annotated[
        Optional[List[str]],
        typer.Option("-n", "--namespace", help="Namespace to watch (repeatable, default all)"),
    ] = None,
):
    """Run the Kubernetes operator (connects to cluster)."""
    from opstack_operator.main import main

    main(namespaces=namespace)


@app.command("generate-crds")
def generate_crds(
    output: Annotated[
        str, typer.Option("-o", "--output", help="Output directory")
    ] = "crds/generated",
    force: Annotated[bool, typer.Option("--force", help="Force regeneration")] = False,
    validate: Annotated[
        bool, typer.Option("--validate", help="Validate generated CRDs")
    ] = False,
):
    """Generate CRD YAML files from pydantic models."""
    from pathlib import Path
    from opstack_operator.crd.generator import OpStackCRDManager

    try:
        output_dir = Path(output)
        manager = OpStackCRDManager(output_dir=output_dir)

        if manager.generate_all_crds(force=force):
            typer.echo(f"CRDs generated successfully in {output_dir}")
        else:
            typer.echo("No CRDs generated (models unchanged)")

        if validate:
            if manager.validate_generated_crds():
                typer.echo("CRD validation passed")
            else:
                typer.echo("CRD validation failed")
                raise typer.Exit(1)

    except OSError as e:
        typer.echo(f"Failed to generate CRDs: {e}")
        raise typer.Exit(1)


@app.command("validate-models")
def validate_models():
    """Validate CRD models without generating files."""
    from opstack_operator.crd.generator import OpStackCRDManager

    manager = OpStackCRDManager()
    manager.registry.discover_models()
    models = manager.registry.get_all_models()
    crds = manager.get_crds_as_dict()

    typer.echo(f"Validated {len(models)} CRD models")
    for key in models.keys():
        typer.echo(f"  - {key}")
    typer.echo(f"Generated {len(crds)} CRDs in memory")

    if len(crds) != len(models):
        typer.echo("Model validation failed: some CRDs could not be generated")
        raise typer.Exit(1)


@app.command("discover")
def discover(
    manifest: Annotated[
        str, typer.Argument(help="OptimismNetwork manifest (YAML)")
    ],
    method: Annotated[
        Optional[str],
        typer.Option("--method", help="Discovery method overriding the manifest"),
    ] = None,
):
    """Resolve a network's contract addresses and print them as YAML."""
    from pathlib import Path

    import yaml
    from pydantic import ValidationError

    from opstack_operator.discovery import DiscoveryCache
    from opstack_operator.errors import ExternalUnavailable
    from opstack_operator.models.network import OptimismNetworkSpec
    from opstack_operator.services.rpc import RPCClient

    document = yaml.safe_load(Path(manifest).read_text()) or {}
    try:
        spec = OptimismNetworkSpec.model_validate(document.get("spec") or {})
    except ValidationError as e:
        typer.echo(f"Invalid OptimismNetwork spec: {e}")
        raise typer.Exit(1)

    try:
        address_set = DiscoveryCache(RPCClient()).resolve(spec, strategy=method)
    except (ExternalUnavailable, ValueError) as e:
        typer.echo(f"Discovery failed: {e}")
        raise typer.Exit(1)

    typer.echo(yaml.safe_dump(address_set.to_status(), sort_keys=False))
