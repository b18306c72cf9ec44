import typer

from hostcert.apps.cli.commands import api, ssl

app = typer.Typer(help="hostcert: tenant hostname TLS provisioning", no_args_is_help=True)
app.add_typer(api.app, name="api")
app.add_typer(ssl.app, name="ssl")


def main() -> None:
    app()


if __name__ == "__main__":
    main()
