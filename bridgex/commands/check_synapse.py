import click

from bridgex.console import inline_status_end, inline_status_start
from bridgex.exceptions import BridgexError
from bridgex.objects.app_config import AppConfig
from bridgex.synapse.synapse_helper import SynapseHelper


@click.command(name="check-synapse")
@click.pass_context
def check_synapse(ctx: click.Context) -> bool:
    """Check that Synapse is up and accepting writes."""
    app_config: AppConfig = ctx.obj["CONFIG"]
    helper = SynapseHelper.from_config(app_config)

    inline_status_start(f"Checking {app_config.synapse_endpoint}...")
    try:
        writable = helper.is_synapse_writable()
    except BridgexError as e:
        inline_status_end(False, error_msg=f"Failed: {e}")
        ctx.exit(1)

    inline_status_end(writable, success_msg="Writable", error_msg="Read only")
    if not writable:
        ctx.exit(1)
    return writable
