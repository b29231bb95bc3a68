from docspine.cli.app import app

app()
