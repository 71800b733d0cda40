from .device import DeviceFlowProvider


class GitHubCopilotProvider(DeviceFlowProvider):
    id = "github-copilot"

    # Public client id of the Copilot editor integration
    client_id = "Iv1.b507a08c87ecfe98"
    device_authorization_endpoint = "https://github.com/login/device/code"
    token_endpoint = "https://github.com/login/oauth/access_token"
    scopes = ["copilot"]
