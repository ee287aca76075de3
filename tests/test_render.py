from factories import make_lead
from followops.followup.render import render, render_for_lead


def test_known_placeholders_are_substituted() -> None:
    lead = make_lead(name="João Pedro", product="mentoria_coletiva")
    body = "Olá {nome}! Ainda pensando na {produto}?"

    assert render_for_lead(body, lead, 3) == "Olá João! Ainda pensando na Mentoria Coletiva?"


def test_unknown_and_malformed_placeholders_are_left_alone() -> None:
    body = "Hi {nome}, {{unknown}} {nome and {"

    assert render(body, {"nome": "Ana"}) == "Hi Ana, {{unknown}} {nome and {"


def test_empty_name_renders_empty_token() -> None:
    lead = make_lead(name="   ")

    assert render_for_lead("Olá {nome}!", lead, 1) == "Olá !"
