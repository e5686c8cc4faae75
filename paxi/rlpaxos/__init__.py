"""Paxos instance that can execute committed entries out of order, and its replica server."""