import io
import json

from openpyxl import load_workbook

from app.registry.db import session_scope
from app.registry.models import AuditEvent
from app.registry.modules.tags.models import StakeholderTag


def _login(client, username="admin", password="adminpw"):
    r = client.post("/api/login", json={"username": username, "password": password})
    assert r.status_code == 200
    return r


def _provincia(client, nombre="Salta"):
    r = client.post("/api/provincias", json={"nombre": nombre})
    assert r.status_code == 201
    return r.json["id"]


def _tag(client, name):
    r = client.post("/api/tags", json={"name": name})
    assert r.status_code == 201
    return r.json["id"]


def _full_payload(provincia_id, **overrides):
    payload = {
        "provincia_id": provincia_id,
        "nombre": "María Gómez",
        "datos_contacto": {
            "email": "maria@example.com",
            "telefono": " +54 387 555 0101 ",
            "organizacion_principal": "Cámara de Comercio",
            "unknown_key": "dropped",
        },
        "objetivos_generales": "Desarrollo regional",
        "intereses_expectativas": "Inversión",
        "recursos": "Red de contactos",
        "expectativas_comunicacion": "Reunión mensual",
        "relaciones": "Gobierno provincial",
        "riesgos_conflictos": "Ninguno",
        "nivel_influencia": "alto",
        "nivel_interes": "medio",
        "datos_especificos_linkedin": {
            "headline": "Presidenta",
            "experiencia": [{"title": "Presidenta", "company": "Cámara", "start_date": "2020"}],
            "formacion": [],
        },
    }
    payload.update(overrides)
    return payload


def test_create_stakeholder(client, app):
    _login(client)
    pid = _provincia(client)
    tag_id = _tag(client, "empresa")

    r = client.post("/api/stakeholders", json=_full_payload(pid, tags=[tag_id]))
    assert r.status_code == 201
    sh = r.json
    assert sh["id"]
    assert sh["provincia_id"] == pid
    assert sh["nombre"] == "María Gómez"
    assert sh["datos_contacto"] == {
        "organizacion_principal": "Cámara de Comercio",
        "email": "maria@example.com",
        "telefono": "+54 387 555 0101",
    }
    assert sh["datos_especificos_linkedin"]["experiencia"] == [
        {
            "title": "Presidenta",
            "company": "Cámara",
            "location": "",
            "start_date": "2020",
            "end_date": "",
            "description": "",
        }
    ]
    assert sh["tags"] == [{"id": tag_id, "name": "empresa"}]
    assert sh["personalidad"] is None
    assert sh["created_at"] and sh["updated_at"]

    with session_scope(app) as s:
        assert s.query(AuditEvent).filter(AuditEvent.action == "stakeholder.create").count() == 1


def test_create_stakeholder_validation(client):
    _login(client)
    pid = _provincia(client)

    r = client.post("/api/stakeholders", json={"provincia_id": pid})
    assert r.status_code == 400
    assert r.json["error"] == "Name (nombre) is required."

    r = client.post("/api/stakeholders", json={"nombre": "Sin provincia"})
    assert r.status_code == 400
    assert r.json["error"] == "provincia_id is required and must be an integer."

    r = client.post("/api/stakeholders", json={"provincia_id": 999, "nombre": "X"})
    assert r.status_code == 400
    assert r.json["error"] == "Province 999 does not exist."

    r = client.post("/api/stakeholders", json={"provincia_id": pid, "nombre": "X", "datos_contacto": "email"})
    assert r.status_code == 400
    assert r.json["error"] == "datos_contacto must be an object."

    r = client.post(
        "/api/stakeholders",
        json={"provincia_id": pid, "nombre": "X", "datos_especificos_linkedin": {"experiencia": "mucha"}},
    )
    assert r.status_code == 400
    assert r.json["error"] == "datos_especificos_linkedin.experiencia must be a list of objects."

    r = client.post("/api/stakeholders", json={"provincia_id": pid, "nombre": "X", "tags": [42]})
    assert r.status_code == 400
    assert r.json["error"] == "Unknown tag id(s): 42"

    r = client.post("/api/stakeholders", data="nope", content_type="application/json")
    assert r.status_code == 400

    r = client.get("/api/stakeholders")
    assert r.json == []


def test_regular_user_can_edit_and_delete(client):
    _login(client, "viewer", "viewerpw")
    pid = _provincia(client)

    r = client.post("/api/stakeholders", json={"provincia_id": pid, "nombre": "Hugo"})
    assert r.status_code == 201
    r = client.delete(f"/api/stakeholders/{r.json['id']}")
    assert r.status_code == 200


def test_update_replaces_fields(client):
    _login(client)
    pid = _provincia(client)
    other_pid = _provincia(client, "Jujuy")
    tag_id = _tag(client, "prensa")
    sh = client.post("/api/stakeholders", json=_full_payload(pid, tags=[tag_id])).json

    r = client.put(
        f"/api/stakeholders/{sh['id']}",
        json={"provincia_id": other_pid, "nombre": "María G.", "nivel_influencia": "bajo"},
    )
    assert r.status_code == 200
    updated = r.json
    assert updated["provincia_id"] == other_pid
    assert updated["nombre"] == "María G."
    assert updated["nivel_influencia"] == "bajo"
    # Absent fields are cleared...
    assert updated["objetivos_generales"] is None
    assert updated["datos_contacto"] == {}
    # ...except tags, which are only replaced when sent.
    assert [t["id"] for t in updated["tags"]] == [tag_id]

    r = client.put(f"/api/stakeholders/{sh['id']}", json={"provincia_id": other_pid, "nombre": "María G.", "tags": []})
    assert r.json["tags"] == []

    r = client.put(f"/api/stakeholders/{sh['id']}", json={"provincia_id": other_pid, "nombre": ""})
    assert r.status_code == 400

    r = client.put("/api/stakeholders/999", json={"provincia_id": pid, "nombre": "X"})
    assert r.status_code == 404


def test_update_is_idempotent(client, app):
    _login(client)
    pid = _provincia(client)
    tag_id = _tag(client, "academia")
    sh = client.post("/api/stakeholders", json=_full_payload(pid)).json
    payload = _full_payload(pid, nombre="Otra", tags=[tag_id])

    first = client.put(f"/api/stakeholders/{sh['id']}", json=payload).json
    second = client.put(f"/api/stakeholders/{sh['id']}", json=payload).json
    assert first == second

    # Round-tripping the serialized row is a no-op too.
    third = client.put(f"/api/stakeholders/{sh['id']}", json=second).json
    assert third == second

    with session_scope(app) as s:
        assert s.query(AuditEvent).filter(AuditEvent.action == "stakeholder.edit").count() == 1


def test_delete_stakeholder_removes_tag_rows(client, app):
    _login(client)
    pid = _provincia(client)
    tag_id = _tag(client, "ong")
    sh = client.post("/api/stakeholders", json={"provincia_id": pid, "nombre": "Eva", "tags": [tag_id]}).json

    r = client.delete(f"/api/stakeholders/{sh['id']}")
    assert r.status_code == 200
    assert r.json == {"success": True}

    r = client.delete(f"/api/stakeholders/{sh['id']}")
    assert r.status_code == 404

    with session_scope(app) as s:
        assert s.query(StakeholderTag).count() == 0

    r = client.get("/api/tags")
    assert [t["name"] for t in r.json] == ["ong"]


def test_list_filters_by_all_requested_tags(client):
    _login(client)
    pid = _provincia(client)
    other_pid = _provincia(client, "Chaco")
    a = _tag(client, "a")
    b = _tag(client, "b")
    client.post("/api/stakeholders", json={"provincia_id": pid, "nombre": "Both", "tags": [a, b]})
    client.post("/api/stakeholders", json={"provincia_id": pid, "nombre": "Only A", "tags": [a]})
    client.post("/api/stakeholders", json={"provincia_id": other_pid, "nombre": "Elsewhere", "tags": [b]})

    r = client.get("/api/stakeholders")
    assert [sh["nombre"] for sh in r.json] == ["Both", "Elsewhere", "Only A"]

    r = client.get(f"/api/stakeholders?tags={a}&tags={b}")
    assert [sh["nombre"] for sh in r.json] == ["Both"]

    r = client.get(f"/api/stakeholders?tags={b}")
    assert [sh["nombre"] for sh in r.json] == ["Both", "Elsewhere"]

    r = client.get(f"/api/stakeholders?tags={b}&provincia_id={other_pid}")
    assert [sh["nombre"] for sh in r.json] == ["Elsewhere"]

    r = client.get("/api/stakeholders?tags=x")
    assert r.status_code == 400


def test_set_stakeholder_tags(client):
    _login(client)
    pid = _provincia(client)
    a = _tag(client, "Beta")
    b = _tag(client, "alfa")
    sh = client.post("/api/stakeholders", json={"provincia_id": pid, "nombre": "Iris"}).json

    r = client.post(f"/api/stakeholders/{sh['id']}/tags", json={"tag_ids": [a, b, a]})
    assert r.status_code == 200
    assert [t["name"] for t in r.json["tags"]] == ["alfa", "Beta"]

    r = client.post(f"/api/stakeholders/{sh['id']}/tags", json={"tag_ids": [b]})
    assert [t["id"] for t in r.json["tags"]] == [b]

    r = client.post(f"/api/stakeholders/{sh['id']}/tags", json={"tag_ids": [b, 999]})
    assert r.status_code == 400
    assert r.json["error"] == "Unknown tag id(s): 999"

    r = client.post(f"/api/stakeholders/{sh['id']}/tags", json={"tag_ids": "1"})
    assert r.status_code == 400

    r = client.post("/api/stakeholders/999/tags", json={"tag_ids": [a]})
    assert r.status_code == 404

    r = client.post(f"/api/stakeholders/{sh['id']}/tags", json={"tag_ids": []})
    assert r.json["tags"] == []


def test_linkedin_import_merges_profile(client):
    _login(client)
    pid = _provincia(client)
    sh = client.post("/api/stakeholders", json=_full_payload(pid)).json

    doc = {
        "about_me": "Emprendedora",
        "formacion": [{"title": "Lic. en Economía", "company": "UNSa", "end_date": None}],
    }
    r = client.post(f"/api/stakeholders/{sh['id']}/linkedin-import", json=doc)
    assert r.status_code == 200
    linkedin = r.json["datos_especificos_linkedin"]
    assert linkedin["about_me"] == "Emprendedora"
    assert linkedin["headline"] == "Presidenta"
    assert len(linkedin["experiencia"]) == 1
    assert linkedin["formacion"] == [
        {
            "title": "Lic. en Economía",
            "company": "UNSa",
            "location": "",
            "start_date": "",
            "end_date": "",
            "description": "",
        }
    ]

    r = client.post(f"/api/stakeholders/{sh['id']}/linkedin-import", json={"experiencia": "no"})
    assert r.status_code == 400

    r = client.post(f"/api/stakeholders/{sh['id']}/linkedin-import", data="[]", content_type="application/json")
    assert r.status_code == 400


def test_personalidad_is_stored_as_is_and_survives_updates(client):
    _login(client)
    pid = _provincia(client)
    sh = client.post("/api/stakeholders", json={"provincia_id": pid, "nombre": "Leo"}).json
    profile = {"tipo": "INTJ", "rasgos": {"apertura": 0.8}, "notas": ["analítico"]}

    r = client.put(f"/api/stakeholders/{sh['id']}/personalidad", json=profile)
    assert r.status_code == 200
    assert r.json["personalidad"] == profile

    r = client.put(f"/api/stakeholders/{sh['id']}", json={"provincia_id": pid, "nombre": "Leo M."})
    assert r.json["personalidad"] == profile

    r = client.put(f"/api/stakeholders/{sh['id']}/personalidad", data="1", content_type="application/json")
    assert r.status_code == 400


def test_contact_export(client):
    _login(client)
    pid = _provincia(client)
    sh = client.post("/api/stakeholders", json=_full_payload(pid, nombre="Ana  Lía")).json

    r = client.get(f"/api/stakeholders/{sh['id']}/contact-export")
    assert r.status_code == 200
    assert r.mimetype == "application/json"
    assert "attachment" in r.headers["Content-Disposition"]
    doc = json.loads(r.data.decode("utf-8"))
    assert doc["datos_contacto"]["email"] == "maria@example.com"
    assert doc["datos_linkedin"]["headline"] == "Presidenta"

    r = client.get("/api/stakeholders/999/contact-export")
    assert r.status_code == 404


def test_excel_export(client):
    _login(client)
    pid = _provincia(client, "Buenos Aires")
    tag_id = _tag(client, "empresa")
    first = client.post("/api/stakeholders", json=_full_payload(pid, tags=[tag_id])).json
    second = client.post("/api/stakeholders", json={"provincia_id": pid, "nombre": "Bruno"}).json

    r = client.post("/api/stakeholders/export", json={"ids": [second["id"], first["id"]]})
    assert r.status_code == 200
    assert r.mimetype == "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"
    assert "stakeholders_" in r.headers["Content-Disposition"]

    ws = load_workbook(io.BytesIO(r.data)).active
    rows = list(ws.iter_rows(values_only=True))
    assert rows[0][:3] == ("Provincia", "Nombre", "Organización principal")
    assert len(rows) == 3
    assert rows[1][:2] == ("Buenos Aires", "Bruno")
    assert rows[2][1] == "María Gómez"
    assert rows[2][2] == "Cámara de Comercio"
    assert rows[2][5] == "maria@example.com"
    assert rows[2][-1] == "empresa"


def test_excel_export_requires_a_selection(client):
    _login(client)

    r = client.post("/api/stakeholders/export", json={"ids": []})
    assert r.status_code == 400
    r = client.post("/api/stakeholders/export", json={})
    assert r.status_code == 400
    r = client.post("/api/stakeholders/export", json={"ids": ["a"]})
    assert r.status_code == 400
    r = client.post("/api/stakeholders/export", json={"ids": [999]})
    assert r.status_code == 404


def test_excel_export_writes_stored_text_literally(client):
    _login(client)
    pid = _provincia(client)
    formula = '=HYPERLINK("http://x","y")'
    sh = client.post(
        "/api/stakeholders",
        json={"provincia_id": pid, "nombre": formula, "recursos": "linea\x0bsalto", "riesgos_conflictos": "=1+1"},
    ).json

    r = client.post("/api/stakeholders/export", json={"ids": [sh["id"]]})
    assert r.status_code == 200

    ws = load_workbook(io.BytesIO(r.data)).active
    headers = [c.value for c in ws[1]]
    row = {header: cell for header, cell in zip(headers, ws[2])}
    assert row["Nombre"].data_type == "s"
    assert row["Nombre"].value == formula
    assert row["Riesgos y conflictos"].data_type == "s"
    assert row["Riesgos y conflictos"].value == "=1+1"
    # Control characters are dropped, the rest of the text is kept.
    assert row["Recursos"].value == "lineasalto"


def test_provincia_id_must_be_a_storable_integer(client):
    _login(client)
    pid = _provincia(client)

    for bad in (2**70, pid + 0.9, "1.5", True, -1):
        r = client.post("/api/stakeholders", json={"provincia_id": bad, "nombre": "X"})
        assert r.status_code == 400, bad
        assert r.json["error"] == "provincia_id is required and must be an integer."

    r = client.post("/api/stakeholders", json={"provincia_id": str(pid), "nombre": "X"})
    assert r.status_code == 201
    assert r.json["provincia_id"] == pid

    r = client.get("/api/stakeholders")
    assert len(r.json) == 1


def test_oversized_tag_ids_are_rejected(client):
    _login(client)
    pid = _provincia(client)

    r = client.get(f"/api/stakeholders?tags={2**70}")
    assert r.status_code == 400

    r = client.post("/api/stakeholders", json={"provincia_id": pid, "nombre": "X", "tags": [2**70]})
    assert r.status_code == 400

    r = client.post("/api/stakeholders/export", json={"ids": [2**70]})
    assert r.status_code == 400


def test_level_labels_are_length_checked(client):
    _login(client)
    pid = _provincia(client)

    r = client.post("/api/stakeholders", json={"provincia_id": pid, "nombre": "X", "nivel_interes": "m" * 33})
    assert r.status_code == 400
    assert r.json["error"] == "nivel_interes must be at most 32 characters."

    r = client.post("/api/stakeholders", json={"provincia_id": pid, "nombre": "X", "nivel_interes": "m" * 32})
    assert r.status_code == 201


def test_search_treats_wildcards_literally(client):
    _login(client)
    pid = _provincia(client)
    client.post("/api/stakeholders", json={"provincia_id": pid, "nombre": "Ana"})
    client.post("/api/stakeholders", json={"provincia_id": pid, "nombre": "100% Ana"})

    r = client.get("/api/stakeholders?q=%25")
    assert [sh["nombre"] for sh in r.json] == ["100% Ana"]

    r = client.get("/api/stakeholders?q=_")
    assert r.json == []


def test_excel_export_rejects_blank_ids(client):
    _login(client)
    r = client.post("/api/stakeholders/export", json={"ids": [""]})
    assert r.status_code == 400
    r = client.post("/api/stakeholders/export", json={"ids": [" , "]})
    assert r.status_code == 400
