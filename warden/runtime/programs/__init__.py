"""Built-in programs every Bank starts with."""
from warden.runtime.pubkey import ASSOCIATED_TOKEN_PROGRAM_ID, SYSTEM_PROGRAM_ID, TOKEN_PROGRAM_ID
from warden.runtime.programs import associated_token, system, token

BUILTIN_PROGRAMS = {
    SYSTEM_PROGRAM_ID: system.process,
    TOKEN_PROGRAM_ID: token.process,
    ASSOCIATED_TOKEN_PROGRAM_ID: associated_token.process,
}
