"""The fixed set of archetypes applied to the source photo.

Each member of :class:`Archetype` carries its display label (used as the
caption on the lookbook page and as the public identifier in the API) and the
prompt sent to the generation backend.  Because the set is a closed
enumeration, a prompt lookup can never fail once a value has been converted
to an ``Archetype``; the only place an unknown name can appear is
:meth:`Archetype.from_label`, which rejects it before any remote call.
"""

from __future__ import annotations

from enum import Enum

from .errors import UnknownArchetypeError


class Archetype(Enum):
    """Hamburg 1984 nightlife archetypes.

    The enum value is the label; :attr:`prompt` holds the instruction text.
    """

    KIEZ_KOENIG = "Kiez-König"
    LUDEN_LARRY = "Luden-Larry"
    GOLD_ZAHN_GUENTHER = "Gold-Zahn Günther"
    DISCO_DIETER = "Disco Dieter"
    PORSCHE_PAUL = "Porsche-Paul"

    @property
    def label(self) -> str:
        return self.value

    @property
    def prompt(self) -> str:
        return _PROMPTS[self]

    @property
    def slug(self) -> str:
        """Filename-friendly form of the label (``"disco-dieter"``)."""
        return self.value.lower().replace(" ", "-")

    @classmethod
    def from_label(cls, label: str) -> Archetype:
        """Convert a public label into an archetype.

        Args:
            label: Display label such as ``"Disco Dieter"``.

        Raises:
            UnknownArchetypeError: If the label is not part of the set.
        """
        try:
            return cls(label)
        except ValueError:
            raise UnknownArchetypeError(label) from None

    @classmethod
    def labels(cls) -> list[str]:
        return [member.value for member in cls]

    def __str__(self) -> str:
        return self.value


_PROMPTS: dict[Archetype, str] = {
    Archetype.KIEZ_KOENIG: (
        "Reimagine the person in this photo as a powerful Hamburg pimp from the 1980s, "
        'the "Kiez-König". The image should be a photorealistic portrait. They are wearing '
        "a black leather jacket over an open-collared shirt, heavy gold chains, and have a "
        "confident, intimidating expression. The background is a dimly lit, smoky bar on "
        "the Reeperbahn. The aesthetic must feel like a gritty 1980s film photograph."
    ),
    Archetype.LUDEN_LARRY: (
        'Reimagine the person in this photo as a flashy Hamburg pimp from the 1980s, "Luden-Larry". '
        "They are wearing a garish, brightly colored silk shirt, a white blazer, and gold-rimmed "
        "aviator sunglasses. They are leaning against a classic 80s sports car. The background is "
        "filled with the bright neon signs of the Reeperbahn at night. The style should be vibrant "
        "and slightly over-saturated, like a high-flash 80s photo."
    ),
    Archetype.GOLD_ZAHN_GUENTHER: (
        "Reimagine the person in this photo as a tough, street-level Hamburg pimp from the 1980s, "
        '"Gold-Zahn Günther". They have a mullet hairstyle and a prominent gold tooth. They are '
        "wearing a cheap-looking tracksuit and a scowl. The photo must have a raw, candid feel, as "
        "if taken on a gritty side street off the Reeperbahn. The lighting is harsh and the colors "
        "are slightly faded."
    ),
    Archetype.DISCO_DIETER: (
        'Reimagine the person in this photo as a stylish Hamburg pimp from the 1980s, "Disco Dieter". '
        "They are inside a pulsating 80s disco, with a disco ball and colorful lights in the "
        "background. They are wearing a shiny shirt, tight pants, and have perfectly coiffed hair. "
        "They are holding a cocktail and have a suave look. The image must capture the dynamic, "
        "colorful atmosphere of an 80s nightclub."
    ),
    Archetype.PORSCHE_PAUL: (
        'Reimagine the person in this photo as a wealthy Hamburg pimp from the 1980s, "Porsche-Paul". '
        "They are standing proudly next to a white Porsche 911. They are wearing an expensive suit "
        "with the jacket open, revealing a flamboyant shirt. Their expression is one of smug "
        "success. The scene is set on a Hamburg street at dusk, with the car's headlights on. The "
        "photo style should be sharp and glossy, like from a car magazine of the era."
    ),
}

# Order in which a full run submits the archetypes.
ALL_ARCHETYPES: tuple[Archetype, ...] = tuple(Archetype)
