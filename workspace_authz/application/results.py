"""
===============================================================================
GRANT-ISSUING RESULTS (Shared Result Models)
===============================================================================

Name:
    Invitation / Share Link Results

Business Goal:
    Contratos de salida estables para los comandos que emiten grants
    (invitaciones y share links), independientes de la capa HTTP.

-------------------------------------------------------------------------------
CRC CARD (Class-Responsibility-Collaborator)
-------------------------------------------------------------------------------
Component:
    results models (module)

Responsibilities:
    - InvitationCreated: invitación guardada + si ya existía (refresh in place).
    - GrantRedemption: resultado de aceptar una invitación o usar un link.
    - InvitationView / ShareLinkView: lecturas con estados derivados
      (expired / maxed out / usable) calculados sin mutar storage.

Collaborators:
    - domain.entities: Invitation, ShareLink, Grant
===============================================================================
"""

from __future__ import annotations

from dataclasses import dataclass
from uuid import UUID

from ..domain.entities import Grant, Invitation, InvitationStatus, ShareLink
from ..domain.roles import EffectiveRole


@dataclass(frozen=True)
class InvitationCreated:
    invitation: Invitation
    is_existing: bool


@dataclass(frozen=True)
class GrantRedemption:
    """
    Resultado de canjear una invitación o un share link.

    Campos:
      - role: rol emitido por la invitación/link
      - effective_role: rol del grant resultante (puede ser mayor: nunca baja)
      - grant_changed: False si el grant existente ya era igual o superior
    """

    folder_id: UUID
    role: EffectiveRole
    effective_role: EffectiveRole
    grant_changed: bool
    grant: Grant


@dataclass(frozen=True)
class InvitationView:
    """Invitación con el estado visible (pending vencida => expired)."""

    invitation: Invitation
    status: InvitationStatus
    is_expired: bool


@dataclass(frozen=True)
class ShareLinkView:
    link: ShareLink
    is_expired: bool
    is_maxed_out: bool
    is_usable: bool
