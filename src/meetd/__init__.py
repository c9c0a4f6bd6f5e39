# SPDX-License-Identifier: MIT
# Copyright (c) 2026 Meetd Contributors

"""Meetd - agent-to-agent meeting negotiation.

Two scheduling agents negotiate a meeting without a trusted intermediary:

  Sender agent
    → SignedProposal (Ed25519 over a canonical payload, single-use nonce, expiry)
    → Recipient server verifies signature, freshness and replay locally
    → Accept / decline / expire transitions, HMAC-signed webhook notifications

Layout:
  - crypto: Ed25519 keypairs and webhook secrets
  - protocol: signed-proposal codec and the nonce ledger
  - scheduling: busy-interval sweep and slot scoring
  - services: proposal lifecycle, availability queries, maintenance loop
  - webhook: event model, HMAC delivery client, fire-and-forget dispatcher
  - storage / calendar: collaborator interfaces and adapters
"""

__version__ = "1.0.0"
