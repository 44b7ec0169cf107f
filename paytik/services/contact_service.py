"""Address book of each alias."""
from paytik.config import DEFAULT_CONTACTS
from paytik.data_structures import Contact
from paytik.database import new_id
from paytik.result import ErrorType, Result


class ContactService:
    """Handles contacts; new aliases start with the default contacts."""

    def __init__(self, db_manager):
        self.db = db_manager

    def _ensure_seeded(self, owner):
        key = f"contacts_seeded_{owner}"
        if self.db.get_setting(key) is None:
            with self.db.transaction():
                for contact in DEFAULT_CONTACTS:
                    self.db.add_contact(new_id("contact"), owner, contact['name'], contact['alias'])
                self.db.set_setting(key, "1")

    def get_contacts(self, owner):
        self._ensure_seeded(owner)
        return [Contact(**r) for r in self.db.get_contacts(owner)]

    def add_contact(self, owner, name, alias):
        """Add a contact unless the name or alias is already in the book."""
        name = (name or "").strip()
        alias = (alias or "").strip()
        if not name or not alias:
            return Result.fail("Name and alias are required", ErrorType.VALIDATION)
        for existing in self.get_contacts(owner):
            if existing.name.lower() == name.lower() or existing.alias == alias:
                return Result.fail(f"Contact '{name}' already exists", ErrorType.DUPLICATE)
        contact = Contact(new_id("contact"), name, alias)
        self.db.add_contact(contact.id, owner, contact.name, contact.alias)
        return Result.ok(contact)

    def remove_contact(self, owner, contact_id):
        self._ensure_seeded(owner)
        if not self.db.delete_contact(owner, contact_id):
            return Result.fail(f"Contact '{contact_id}' not found", ErrorType.NOT_FOUND)
        return Result.ok(contact_id)
