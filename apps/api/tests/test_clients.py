"""Client accounts created by the firm."""

from portal.db.enums import JobType
from portal.db.models import Client, Job


async def test_create_returns_generated_password_and_queues_folder(admin_client, db):
    response = await admin_client.post(
        "/api/admin/clients",
        json={"email": "Jeanne.Roux@Example.com", "nom": "Roux", "prenom": "Jeanne"},
    )

    assert response.status_code == 201
    body = response.json()
    assert body["client"]["email"] == "jeanne.roux@example.com"
    assert body["generated_password"]

    client = db.query(Client).filter(Client.email == "jeanne.roux@example.com").one()
    job = db.query(Job).one()
    assert job.job_type == JobType.ONEDRIVE_CLIENT_FOLDER_CREATE.value
    assert job.payload == {"client_id": str(client.id)}


async def test_duplicate_email_is_409(admin_client, test_client):
    response = await admin_client.post(
        "/api/admin/clients",
        json={"email": test_client.email, "nom": "Roux", "prenom": "Jeanne"},
    )

    assert response.status_code == 409
    assert response.json()["message"] == "Email already in use"
