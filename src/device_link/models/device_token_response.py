from pydantic import BaseModel, Field, RootModel


class DeviceAuthorizationResponse(BaseModel):
    device_code: str = Field(description="The device verification code", repr=False)
    user_code: str = Field(description="The end-user verification code")
    verification_uri: str = Field(
        description="The end-user verification URI on the authorization server"
    )
    expires_in: int = Field(
        gt=0, description="Lifetime in seconds of the device_code and user_code"
    )
    interval: int | None = Field(
        None,
        ge=0,
        description="Minimum amount of time in seconds between polling requests",
    )


class TokenResponse(BaseModel):
    token_type: str | None = Field(None, description="The type of token, usually 'bearer'")

    access_token: str = Field(description="The issued access token", repr=False)
    scope: str | None = Field(
        None,
        description="Space-delimited list of scopes associated with the access token",
    )

    @property
    def scopes(self) -> list[str]:
        if not self.scope:
            return []

        # GitHub separates scopes with commas, RFC 6749 with spaces
        return self.scope.replace(",", " ").split()


class TokenErrorResponse(BaseModel):
    error: str = Field(description="Error code as per OAuth 2.0 specification")
    error_description: str | None = Field(
        None, description="Human-readable explanation of the error"
    )
    error_uri: str | None = Field(
        None, description="URI to a web page with more information about the error"
    )


class DeviceTokenEndpointResponse(RootModel):
    root: TokenErrorResponse | TokenResponse

    def is_error(self) -> bool:
        return isinstance(self.root, TokenErrorResponse)
