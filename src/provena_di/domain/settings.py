from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from provena_di.domain.enums import Stage


class InjectorSettings(BaseSettings):
    """Injector configuration.

    Values can be supplied directly or through ``PROVENA_DI_*`` environment
    variables, e.g. ``PROVENA_DI_STAGE=production``.

    Attributes:
        stage: Build stage; PRODUCTION creates every singleton eagerly.
        jit_bindings_enabled: Synthesize bindings for unbound concrete classes.
        circular_proxies_enabled: Break constructor cycles with placeholders for interface-backed keys.
        validate_on_build: Walk the dependency graph of every explicit binding while building.
    """

    model_config = SettingsConfigDict(env_prefix="PROVENA_DI_", case_sensitive=False)

    stage: Stage = Field(default=Stage.DEVELOPMENT, description="Build stage of the injector.")
    jit_bindings_enabled: bool = Field(default=True, description="Allow just-in-time bindings.")
    circular_proxies_enabled: bool = Field(default=True, description="Allow circular proxies.")
    validate_on_build: bool = Field(default=True, description="Validate the binding graph at build time.")
