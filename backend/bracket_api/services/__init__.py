"""
Services Layer

Bracket engine logic behind the HTTP routes:
- bracket_builder: pure construction of the match tree (no session)
- match_store: every tournament/participant/match read and write
- match_advancer / bracket_service: results, advancement, registration, generation

Services raise bracket_errors.BracketError subclasses; routes translate them.
"""
