class PortalAccountExists(Exception):
    def __init__(self, account):
        super().__init__(f'Portal account {account.username} already exists for lead {account.lead_id}.')
        self.account = account
