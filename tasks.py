from invoke import task


@task
def env(c):
    """
    Create/update the project virtual environment and install dependencies.
    """
    c.run("pip install -e .[dev]")


@task(pre=[env], help={"transport": "\"stdio\" or \"sse\""})
def run(c, transport="stdio"):
    """
    Launch the club statistics MCP server with the given transport.
    """
    c.run(f"python -m clubstats_mcp --transport {transport}", pty=True)


@task
def ask(c, user=""):
    """
    Open the interactive question console.
    """
    user_arg = f' --user "{user}"' if user else ""
    c.run(f"clubstats-ask{user_arg}", pty=True)


@task
def test(c):
    """
    Run the test suite.
    """
    c.run("pytest tests -q")
